#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Configure the AzureRM provider.

## Overview

`configure` is invoked once, when the host configures the provider, and
returns the `armprovider.session.azure.ArmClient` that resource handlers use
for the rest of the process. It runs three steps in order and stops at the
first that fails:

1. Resolve the credentials from the configuration and environment, and
   validate them. Every missing setting is reported by a single
   `armprovider.credentials.ConfigurationError`. Nothing touches the network
   before this step succeeds.

2. Exchange the credentials for a client using a
   `armprovider.session.ClientFactory`. A rejected or failed exchange raises
   `armprovider.session.AuthError`.

3. Register the resource providers with the subscription, once per process,
   via `armprovider.registration.register_all`. A failure raises the
   `armprovider.registration.RegistrationError` shared by every caller.

For example:

    client = configure({
        'subscription_id': '00000000-0000-0000-0000-000000000000',
        'tenant_id': '11111111-1111-1111-1111-111111111111',
        'client_id': '22222222-2222-2222-2222-222222222222',
        # client_secret is read from ARM_CLIENT_SECRET
    })
"""

import logging

from armprovider.credentials import (
    ConfigurationError,
    credentials_from_config,
    validate,
)
from armprovider.registration import register_all
from armprovider.session.azure import CredsViaClientSecret

LOG = logging.getLogger(__name__)


def configure(cfg, environ=None, client_factory=None, coordinator=None):
    """Returns an authenticated client after validating and registering.

    `cfg` is a dict of provider settings or an `armprovider.config.Config`
    and `environ` the mapping used for environment variable fallbacks. The
    `client_factory` defaults to `CredsViaClientSecret` and `coordinator` to
    the process-wide registration coordinator.
    """
    creds = credentials_from_config(cfg, environ=environ)
    LOG.info("configuring provider with %r", creds)

    violations = validate(creds)
    if violations:
        raise ConfigurationError(violations)

    factory = client_factory or CredsViaClientSecret()
    client = factory.build_client(creds)
    LOG.info("authenticated %r", client)

    register = coordinator.register_all if coordinator else register_all
    error = register(client)
    if error:
        raise error

    return client
