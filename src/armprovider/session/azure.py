#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Obtain Azure Resource Manager clients for a service principal.

## Overview

This module provides `CredsViaClientSecret`, a `ClientFactory` that
authenticates a service principal against Azure AD using its client ID and
client secret. The tenant of the `CredentialSet` selects the directory, and
its `environment` selects the Azure cloud (public, US government, or China),
which determines both the Azure AD authority host and the Resource Manager
endpoint.

## Quick Start

    factory = CredsViaClientSecret()
    client = factory.build_client(creds)

    # The Resource Manager client bound to the subscription
    client.resources.providers.get('Microsoft.Network')

    # The process-wide lock registry shared by resource handlers
    with client.mutex_kv.locked(vnet_id):
        ...

## Validation

The factory requests a Resource Manager token before it returns. A bad secret,
a disabled service principal, or an unreachable authority therefore fails in
`build_client` with an `AuthError`, rather than later in each of the
concurrent provider registrations. The `Microsoft.Compute` provider is then
registered with the new client; a failure there is also an `AuthError`. The
remaining providers are left to `armprovider.registration`.

## Thread Safety

`ClientSecretCredential` caches tokens in the MSAL token cache, which is
protected by locks. To avoid a burst of identical token requests when many
threads first use the credential, this module only lets one thread request a
token for a given scope; the others wait until it is done and then read the
cache.
"""
import functools
import logging
import threading
from collections import namedtuple

from azure.core.exceptions import AzureError, ClientAuthenticationError
from azure.identity import AzureAuthorityHosts, ClientSecretCredential
from azure.mgmt.resource import ResourceManagementClient

from armprovider.mutexkv import ARM_MUTEX_KV
from armprovider.registration import ProviderRegistrationFailed, register_provider
from armprovider.session import AuthError, ClientFactory

LOG = logging.getLogger(__name__)

Cloud = namedtuple("Cloud", ["authority", "resource_manager"])

CLOUDS = {
    "public": Cloud(
        AzureAuthorityHosts.AZURE_PUBLIC_CLOUD, "https://management.azure.com/"
    ),
    "usgovernment": Cloud(
        AzureAuthorityHosts.AZURE_GOVERNMENT, "https://management.usgovcloudapi.net/"
    ),
    "china": Cloud(
        AzureAuthorityHosts.AZURE_CHINA, "https://management.chinacloudapi.cn/"
    ),
}
"""Azure AD authority host and Resource Manager endpoint of each cloud."""

COMPUTE_NAMESPACE = "Microsoft.Compute"


def arm_scope(cloud):
    """Returns the token scope of the Resource Manager endpoint of `cloud`."""
    return cloud.resource_manager + ".default"


# Decorator used to wrap a credential's get_token(). The first call for a scope
# is made while holding the lock, so every other thread asking for the same
# scope blocks until the token cache has been populated. Later calls proceed
# concurrently and are served from the cache.
def _wait_once_per_scope(func):
    done = set()
    lock = threading.RLock()

    @functools.wraps(func)
    def wrapper(*scopes, **kwargs):
        scope_key = tuple(scopes)
        with lock:
            if scope_key not in done:
                # Marked before the call so a failure does not serialize the
                # threads that follow.
                done.add(scope_key)
                return func(*scopes, **kwargs)
        return func(*scopes, **kwargs)

    return wrapper


class ArmClient:
    """An authenticated handle on Azure Resource Manager for one subscription.

    `credential` is the azure-identity credential, usable with any other Azure
    SDK client. `resources` is a `ResourceManagementClient` bound to
    `subscription_id`. `mutex_kv` is the process-wide
    `armprovider.mutexkv.MutexKV` used by resource handlers to serialize
    changes to shared Azure objects.
    """

    def __init__(self, credential, subscription_id, cloud, resources, mutex_kv=ARM_MUTEX_KV):
        # pylint: disable=too-many-arguments
        self.credential = credential
        self.subscription_id = subscription_id
        self.cloud = cloud
        self.resources = resources
        self.mutex_kv = mutex_kv

    def __repr__(self):
        return (
            f"ArmClient(subscription_id={self.subscription_id!r}, "
            f"endpoint={self.cloud.resource_manager!r})"
        )


class CredsViaClientSecret(ClientFactory):
    """A client factory that authenticates a service principal via its secret.

    Extra keyword arguments are passed to the `ResourceManagementClient`,
    for example to adjust its retry policy.
    """

    def __init__(self, **client_kwargs):
        self.client_kwargs = client_kwargs

    def build_client(self, creds):
        cloud = CLOUDS.get(creds.environment)
        if cloud is None:
            raise AuthError(
                f"Environment '{creds.environment}' is not a known Azure cloud, "
                f"expected one of: {', '.join(CLOUDS)}"
            )
        scope = arm_scope(cloud)

        credential = ClientSecretCredential(
            creds.tenant_id,
            creds.client_id,
            creds.client_secret,
            authority=cloud.authority,
        )
        credential.get_token = _wait_once_per_scope(credential.get_token)

        LOG.info(
            "authenticating client %s in tenant %s via %s",
            creds.client_id,
            creds.tenant_id,
            cloud.authority,
        )
        try:
            credential.get_token(scope)
        except ClientAuthenticationError as e:
            raise AuthError(
                f"Azure AD rejected the credentials of client {creds.client_id} "
                f"in tenant {creds.tenant_id}: {e}"
            ) from e
        except AzureError as e:
            raise AuthError(
                f"Cannot authenticate with Azure AD at {cloud.authority}: {e}"
            ) from e

        resources = ResourceManagementClient(
            credential,
            creds.subscription_id,
            base_url=cloud.resource_manager,
            credential_scopes=[scope],
            **self.client_kwargs,
        )
        client = ArmClient(credential, creds.subscription_id, cloud, resources)

        # Compute is registered with the client, before the other providers.
        try:
            register_provider(client, COMPUTE_NAMESPACE)
        except ProviderRegistrationFailed as e:
            raise AuthError(str(e)) from e

        return client
