#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#

# pylint: disable=redefined-outer-name,missing-docstring

import threading
from collections import Counter

import pytest
from azure.core.exceptions import HttpResponseError, ServiceRequestError

from armprovider import registration
from armprovider.registration import (
    DONE,
    IN_PROGRESS,
    NOT_STARTED,
    PROVIDER_NAMESPACES,
    ProviderRegistrationFailed,
    RegistrationCoordinator,
    RegistrationError,
    register_provider,
)


def make_client(mocker, failures=None, gate=None):
    """Returns a client double whose register call fails for `failures`.

    `failures` maps a namespace to the exception raised when registering it.
    If `gate` is an Event, every registration waits for it first.
    """
    failures = failures or {}
    client = mocker.MagicMock()
    client.subscription_id = "00000000-0000-0000-0000-000000000000"

    def register(namespace):
        if gate:
            assert gate.wait(5), "gate was never opened"
        if namespace in failures:
            raise failures[namespace]
        return mocker.MagicMock(namespace=namespace, registration_state="Registered")

    client.resources.providers.register.side_effect = register
    return client


def attempts(client):
    return Counter(c.args[0] for c in client.resources.providers.register.call_args_list)


def denied():
    return HttpResponseError(
        message="AuthorizationFailed: The client does not have authorization"
    )


def test_catalog_is_static():
    assert isinstance(PROVIDER_NAMESPACES, tuple)
    assert len(set(PROVIDER_NAMESPACES)) == len(PROVIDER_NAMESPACES)
    for namespace in ("Network", "Storage", "Sql", "Search", "Resources",
                      "ServiceBus", "KeyVault", "EventHub"):
        assert f"Microsoft.{namespace}" in PROVIDER_NAMESPACES


def test_all_succeed(mocker):
    client = make_client(mocker)
    coordinator = RegistrationCoordinator()

    assert coordinator.state == NOT_STARTED
    assert coordinator.register_all(client) is None
    assert coordinator.state == DONE
    assert attempts(client) == Counter(PROVIDER_NAMESPACES)


def test_one_failure_does_not_short_circuit(mocker):
    client = make_client(mocker, failures={"Microsoft.KeyVault": denied()})
    coordinator = RegistrationCoordinator()

    error = coordinator.register_all(client)

    assert isinstance(error, RegistrationError)
    assert list(error.failures) == ["Microsoft.KeyVault"]
    assert "Microsoft.KeyVault" in str(error)
    assert "permission" in str(error)
    assert "AuthorizationFailed" in str(error)
    for namespace in PROVIDER_NAMESPACES:
        if namespace != "Microsoft.KeyVault":
            assert namespace not in str(error)
    assert attempts(client) == Counter(PROVIDER_NAMESPACES)


def test_failures_follow_catalog_order(mocker):
    failing = ["Microsoft.EventHub", "Microsoft.Network", "Microsoft.Sql"]
    client = make_client(mocker, failures={ns: denied() for ns in failing})

    error = RegistrationCoordinator().register_all(client)

    assert list(error.failures) == [ns for ns in PROVIDER_NAMESPACES if ns in failing]


def test_sequential_calls_register_once(mocker):
    client = make_client(mocker)
    coordinator = RegistrationCoordinator()

    assert coordinator.register_all(client) is None
    assert coordinator.register_all(client) is None
    assert attempts(client) == Counter(PROVIDER_NAMESPACES)


def test_failure_is_replayed_not_retried(mocker):
    client = make_client(mocker, failures={"Microsoft.Storage": denied()})
    coordinator = RegistrationCoordinator()

    first = coordinator.register_all(client)
    second = coordinator.register_all(make_client(mocker))

    assert first is not None
    assert second is first
    assert attempts(client) == Counter(PROVIDER_NAMESPACES)


def test_concurrent_calls_register_once(mocker):
    gate = threading.Event()
    client = make_client(mocker, failures={"Microsoft.Sql": denied()}, gate=gate)
    coordinator = RegistrationCoordinator()
    results = {}

    def call(name):
        results[name] = coordinator.register_all(client)

    first = threading.Thread(target=call, args=("first",))
    first.start()
    while coordinator.state != IN_PROGRESS:
        first.join(0.01)

    second = threading.Thread(target=call, args=("second",))
    second.start()
    second.join(0.1)
    assert second.is_alive(), "second caller should wait for the first pass"
    assert "second" not in results

    gate.set()
    first.join(5)
    second.join(5)

    assert results["first"] is results["second"]
    assert list(results["first"].failures) == ["Microsoft.Sql"]
    assert attempts(client) == Counter(PROVIDER_NAMESPACES)


def test_many_concurrent_first_callers(mocker):
    client = make_client(mocker)
    coordinator = RegistrationCoordinator()
    start = threading.Barrier(8, timeout=5)
    results = []

    def call():
        start.wait()
        results.append(coordinator.register_all(client))

    threads = [threading.Thread(target=call) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(5)

    assert results == [None] * 8
    assert attempts(client) == Counter(PROVIDER_NAMESPACES)


def test_unexpected_exception_counts_as_failure(mocker):
    client = make_client(mocker, failures={"Microsoft.Cdn": RuntimeError("boom")})

    error = RegistrationCoordinator().register_all(client)

    assert error.failures == {"Microsoft.Cdn": "boom"}
    assert attempts(client) == Counter(PROVIDER_NAMESPACES)


def test_aborted_pass_is_an_outcome(mocker):
    coordinator = RegistrationCoordinator()
    mocker.patch.object(coordinator, "_register", side_effect=RuntimeError("no threads"))

    error = coordinator.register_all(mocker.MagicMock())

    assert isinstance(error, RegistrationError)
    assert "no threads" in str(error)
    assert isinstance(error.__cause__, RuntimeError)
    assert coordinator.state == DONE
    assert coordinator.register_all(mocker.MagicMock()) is error


def test_custom_namespaces_and_workers(mocker):
    client = make_client(mocker)
    coordinator = RegistrationCoordinator(["Microsoft.Web"], max_workers=3)

    assert coordinator.max_workers == 3
    assert coordinator.register_all(client) is None
    assert attempts(client) == Counter(["Microsoft.Web"])


def test_default_workers_match_catalog():
    assert RegistrationCoordinator().max_workers == len(PROVIDER_NAMESPACES)
    assert RegistrationCoordinator([]).max_workers == 1


def test_module_register_all_uses_shared_coordinator(mocker):
    shared = mocker.patch.object(registration, "_COORDINATOR")
    client = mocker.MagicMock()

    assert registration.register_all(client) is shared.register_all.return_value
    shared.register_all.assert_called_once_with(client)


def test_register_provider_success(mocker):
    client = make_client(mocker)
    register_provider(client, "Microsoft.Network")
    client.resources.providers.register.assert_called_once_with("Microsoft.Network")


def test_register_provider_rejected(mocker):
    client = make_client(mocker, failures={"Microsoft.Network": denied()})

    with pytest.raises(ProviderRegistrationFailed) as info:
        register_provider(client, "Microsoft.Network")

    assert info.value.namespace == "Microsoft.Network"
    assert str(info.value).startswith(
        "Credentials for accessing the Azure Resource Manager API are likely"
    )
    assert "AuthorizationFailed" in str(info.value)


def test_register_provider_transport_error(mocker):
    error = ServiceRequestError("Connection refused")
    client = make_client(mocker, failures={"Microsoft.Network": error})

    with pytest.raises(ProviderRegistrationFailed) as info:
        register_provider(client, "Microsoft.Network")

    assert str(info.value) == (
        "Cannot request provider registration for Azure Resource Manager: "
        "Connection refused."
    )
    assert info.value.__cause__ is error


def test_register_provider_already_registered(mocker):
    error = HttpResponseError(
        message="The resource provider 'Microsoft.Network' is already registered."
    )
    client = make_client(mocker, failures={"Microsoft.Network": error})

    register_provider(client, "Microsoft.Network")


def test_already_registered_is_success_for_coordinator(mocker):
    error = HttpResponseError(message="Namespace is already registered")
    client = make_client(mocker, failures={"Microsoft.Search": error})

    assert RegistrationCoordinator().register_all(client) is None
