#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Service principal credentials and their validation.

## Overview

A `CredentialSet` holds the identity used by the provider: the subscription
in which resources are managed, and the tenant, client ID and client secret of
the service principal that manages them. It is built once from the caller's
configuration with `credentials_from_config` and never changes afterwards.

Each setting may be omitted from the configuration, in which case the
well-known environment variable is consulted:

    subscription_id  ARM_SUBSCRIPTION_ID
    client_id        ARM_CLIENT_ID
    client_secret    ARM_CLIENT_SECRET
    tenant_id        ARM_TENANT_ID
    access_key       ARM_ACCESS_KEY     (optional)
    environment      ARM_ENVIRONMENT    (optional, defaults to "public")

A setting missing from both is not an error at this point. `validate` reports
every missing setting in one pass, so the operator can fix them all at once:

    creds = credentials_from_config({'subscription_id': 's', 'tenant_id': 't'})
    violations = validate(creds)
    if violations:
        raise ConfigurationError(violations)
"""

import logging
from dataclasses import dataclass, field

from armprovider.config import Any, Config, Dict, Str

LOG = logging.getLogger(__name__)

KNOWN_ENVIRONMENTS = ("public", "usgovernment", "china")
"""Names of the Azure clouds a provider can be configured against."""

# Each recognized setting: (key, environment variable, default).
SETTINGS = (
    ("subscription_id", "ARM_SUBSCRIPTION_ID", ""),
    ("client_id", "ARM_CLIENT_ID", ""),
    ("client_secret", "ARM_CLIENT_SECRET", ""),
    ("tenant_id", "ARM_TENANT_ID", ""),
    ("access_key", "ARM_ACCESS_KEY", ""),
    ("environment", "ARM_ENVIRONMENT", "public"),
)


@dataclass(frozen=True)
class CredentialSet:
    """Immutable identity of the service principal used by the provider.

    `client_secret` and `access_key` are excluded from the repr, so a
    `CredentialSet` can be logged safely.
    """

    subscription_id: str = ""
    client_id: str = ""
    client_secret: str = field(default="", repr=False)
    tenant_id: str = ""
    access_key: str = field(default="", repr=False)
    environment: str = "public"


class ConfigurationError(Exception):
    """Raised when the provider's credentials are incomplete.

    `violations` contains every problem found, in a stable order. The
    string form lists all of them, one per line.
    """

    def __init__(self, violations):
        self.violations = list(violations)
        super().__init__("\n".join(self.violations))


def credentials_from_config(cfg, environ=None):
    """Returns a `CredentialSet` built from `cfg` and the environment.

    `cfg` is either a plain dict of settings or an `armprovider.config.Config`,
    whose `Provider` section holds the settings. `environ` is the mapping
    used for the environment variable fallbacks, `os.environ` if omitted.
    Values present in `cfg` win over the environment. A value that is not a
    string raises a `TypeError`.
    """
    if isinstance(cfg, Config):
        section = cfg.get("Provider", type=Dict(Str, Any), default={})
    else:
        section = cfg or {}
    section = Config(section)

    values = {
        key: section.get(key, type=Str, default=default, env=var, environ=environ)
        for key, var, default in SETTINGS
    }
    creds = CredentialSet(**values)
    LOG.debug("resolved credentials: %r", creds)
    return creds


def validate(creds):
    """Returns a list of the problems with `creds`, empty if it is valid.

    All required settings are checked, regardless of earlier failures, in the
    order subscription, client, secret, tenant. `access_key` is never
    required, and `environment` is checked when the client is built.
    """
    violations = []

    if not creds.subscription_id:
        violations.append("Subscription ID must be configured for the AzureRM provider")
    if not creds.client_id:
        violations.append("Client ID must be configured for the AzureRM provider")
    if not creds.client_secret:
        violations.append("Client Secret must be configured for the AzureRM provider")
    if not creds.tenant_id:
        violations.append("Tenant ID must be configured for the AzureRM provider")

    return violations
