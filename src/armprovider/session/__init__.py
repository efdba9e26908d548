#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Exchange provider credentials for an authenticated management client.

## Overview

This module provides the `ClientFactory` interface. Given a validated
`armprovider.credentials.CredentialSet`, a client factory performs the
credential exchange with the identity endpoint and returns a client bound to
the subscription. The client is handed to the provider registration step and
then to the resource handlers.

`armprovider.session.azure`
:  `CredsViaClientSecret` authenticates a service principal with its client
secret and returns an `armprovider.session.azure.ArmClient`.
"""


class AuthError(Exception):
    """Raised when the credential exchange is rejected or cannot be made.

    The message includes the underlying error, so an operator can tell a bad
    secret apart from an unreachable identity endpoint.
    """


class ClientFactory:
    """A client factory is used to obtain authenticated clients.

    This is an abstract base class and cannot be instantiated directly.
    """

    def build_client(self, creds):
        """Returns a client authenticated with `creds`.

        `creds` must already have passed `armprovider.credentials.validate`;
        factories do not validate again. An `AuthError` is raised if the
        exchange fails. Factories never retry.
        """
        raise NotImplementedError
