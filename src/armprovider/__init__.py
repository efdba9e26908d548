#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Credential bootstrap and resource provider registration for AzureRM.

## Overview

`armprovider` is the configuration step of an Azure Resource Manager
infrastructure provider. Before any resource is created, read, updated, or
destroyed, the provider must validate the service principal credentials it
was given, authenticate with Azure AD, and make sure every Azure resource
provider it may use is registered with the subscription. This package does
exactly that, once per process, and hands back a client for the resource
handlers to use.

### CLI Usage

The `armprovider` command, documented on the `armprovider.cli` page, runs the
configuration step on its own to check a service principal.

### Library Usage

`armprovider.provider`
: `armprovider.provider.configure` is the single entry point used by the host.

`armprovider.credentials`
: The `armprovider.credentials.CredentialSet`, how it is read from the
configuration and environment, and its validation.

`armprovider.session`
: The `armprovider.session.ClientFactory` interface and the Azure AD
client-secret implementation in `armprovider.session.azure`.

`armprovider.registration`
: Concurrent, once-per-process registration of resource providers.

`armprovider.mutexkv`
: The process-wide registry of keyed locks used by resource handlers that
change a shared Azure object.

`armprovider.location`
: Helpers resource handlers use to compare Azure names: normalized region
names and case-insensitive resource group names.
"""

name = "armprovider"
__version__ = "1.0.0"
