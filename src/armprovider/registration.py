#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Registers Azure resource providers with the subscription, once.

## Overview

Before resources of a kind can be created in a subscription, the Azure
resource provider owning that kind (`Microsoft.Network`, `Microsoft.Storage`,
...) must be registered with the subscription. Rather than have every resource
handler check and register the provider it needs, all of the providers in
`PROVIDER_NAMESPACES` are registered up front, whether or not the
configuration uses them. This is also what Microsoft's own tooling does.

`RegistrationCoordinator.register_all` registers every namespace concurrently
using a thread pool and waits for all of them. Its outcome is `None` if every
namespace registered, or a `RegistrationError` describing each namespace that
failed. The work is done once per coordinator: later calls, including calls
made concurrently with the first, wait for that first pass and return the very
same outcome. A failure is not retried.

The module-level `register_all` uses a coordinator shared by the whole
process:

    error = register_all(client)
    if error:
        raise error

## Classification

A namespace fails when the request cannot be made (the transport raised), or
when Resource Manager rejects it, which nearly always means the credentials
are wrong or the service principal lacks permission to register providers.
A rejection stating that the namespace is already registered is a success.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed

from azure.core.exceptions import AzureError, HttpResponseError

LOG = logging.getLogger(__name__)

# Microsoft.Compute is registered by armprovider.session.azure when the client
# is built.
PROVIDER_NAMESPACES = (
    "Microsoft.Network",
    "Microsoft.Cdn",
    "Microsoft.Storage",
    "Microsoft.Sql",
    "Microsoft.Search",
    "Microsoft.Resources",
    "Microsoft.ServiceBus",
    "Microsoft.KeyVault",
    "Microsoft.EventHub",
)
"""Resource provider namespaces registered with the subscription."""

NOT_STARTED = "not started"
IN_PROGRESS = "in progress"
DONE = "done"


class ProviderRegistrationFailed(Exception):
    """Raised by `register_provider` when a namespace was not registered."""

    def __init__(self, namespace, reason):
        super().__init__(reason)
        self.namespace = namespace


class RegistrationError(Exception):
    """The outcome of a registration pass in which a namespace failed.

    `failures` maps each namespace that failed to the reason, in the order of
    the catalog.
    """

    def __init__(self, failures, message=None):
        self.failures = dict(failures)
        if message is None:
            message = "Failed to register Azure resource providers:\n" + "\n".join(
                f"  {ns}: {reason}" for ns, reason in self.failures.items()
            )
        super().__init__(message)


def _already_registered(error):
    code = getattr(error.error, "code", None) or ""
    return "alreadyregistered" in code.lower() or "already registered" in str(error).lower()


def register_provider(client, namespace):
    """Registers `namespace` with the subscription of `client`.

    Raises `ProviderRegistrationFailed` if the request could not be made or
    was rejected.
    """
    LOG.debug("registering %s", namespace)
    try:
        provider = client.resources.providers.register(namespace)

    except HttpResponseError as e:
        if _already_registered(e):
            LOG.debug("%s: already registered", namespace)
            return
        raise ProviderRegistrationFailed(
            namespace,
            "Credentials for accessing the Azure Resource Manager API are likely "
            "to be incorrect, or the service principal does not have permission "
            f"to use the Azure Service Management API: {e.message}",
        ) from e

    except AzureError as e:
        raise ProviderRegistrationFailed(
            namespace,
            f"Cannot request provider registration for Azure Resource Manager: {e}.",
        ) from e

    LOG.debug("%s: %s", namespace, getattr(provider, "registration_state", None))


class RegistrationCoordinator:
    """Registers a fixed set of namespaces at most once.

    `namespaces` defaults to `PROVIDER_NAMESPACES`. The pass uses a thread
    pool of `max_workers` threads, one per namespace unless specified.

    The coordinator moves from `NOT_STARTED` to `IN_PROGRESS` to `DONE` and
    never back. The first caller of `register_all` makes the move out of
    `NOT_STARTED` under the same lock that every other caller checks, so only
    one pass can ever start.
    """

    def __init__(self, namespaces=PROVIDER_NAMESPACES, max_workers=None):
        self.namespaces = tuple(namespaces)
        self.max_workers = max_workers or max(len(self.namespaces), 1)
        self._cond = threading.Condition()
        self._state = NOT_STARTED
        self._outcome = None

    @property
    def state(self):
        """Current state: `NOT_STARTED`, `IN_PROGRESS`, or `DONE`."""
        with self._cond:
            return self._state

    def register_all(self, client):
        """Registers every namespace with the subscription of `client`.

        Returns `None` on success or a `RegistrationError`. Only the first
        call does the work; other calls block until it has finished and
        return the same outcome, even if passed a different client.
        """
        with self._cond:
            if self._state != NOT_STARTED:
                self._cond.wait_for(lambda: self._state == DONE)
                return self._outcome
            self._state = IN_PROGRESS

        outcome = RegistrationError({}, "Provider registration was interrupted")
        try:
            outcome = self._register(client)
        except Exception as e:  # pylint: disable=broad-except
            LOG.error("provider registration aborted: %s", e, exc_info=True)
            outcome = RegistrationError({}, f"Provider registration aborted: {e}")
            outcome.__cause__ = e
        finally:
            with self._cond:
                self._outcome = outcome
                self._state = DONE
                self._cond.notify_all()

        return outcome

    def _register(self, client):
        LOG.info(
            "registering %d resource providers with subscription %s",
            len(self.namespaces),
            getattr(client, "subscription_id", "?"),
        )
        failures = {}

        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="register"
        ) as pool:
            f2ns = {pool.submit(register_provider, client, ns): ns for ns in self.namespaces}

            # Every future is waited on, so no registration is abandoned when
            # another one fails.
            for future in as_completed(f2ns):
                namespace = f2ns[future]
                try:
                    future.result()
                except Exception as e:  # pylint: disable=broad-except
                    LOG.warning("%s: registration failed: %s", namespace, e)
                    failures[namespace] = str(e)

        if not failures:
            LOG.info("registered all resource providers")
            return None

        return RegistrationError(
            {ns: failures[ns] for ns in self.namespaces if ns in failures}
        )


_COORDINATOR = RegistrationCoordinator()


def register_all(client):
    """Registers `PROVIDER_NAMESPACES` once per process.

    See `RegistrationCoordinator.register_all`.
    """
    return _COORDINATOR.register_all(client)
