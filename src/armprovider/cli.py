#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Bootstrap the AzureRM provider from the command line.

## Overview

The `armprovider` command runs the provider's configuration step outside of a
host process: it validates the service principal credentials, authenticates
with Azure AD, and registers the resource providers with the subscription.
It is useful to check a service principal before handing it to automation:

    $ export ARM_CLIENT_SECRET=...
    $ armprovider --subscription-id 00000000-0000-0000-0000-000000000000 \\
        --tenant-id 11111111-1111-1111-1111-111111111111 \\
        --client-id 22222222-2222-2222-2222-222222222222
    00000000-0000-0000-0000-000000000000: registered Microsoft.Network, ...

The exit status is 0 on success and 1 otherwise. Tracebacks are printed only
when the `ARMPROVIDER_TRACE` environment variable is set.

## Configuration

Defaults are read from `$HOME/.armprovider.yaml`, or the file named by the
`ARMPROVIDER_CONFIG` environment variable. The `Provider` section holds the
credential settings and the `CLI` section defaults for the flags:

    Provider:
      subscription_id: 00000000-0000-0000-0000-000000000000
      tenant_id: 11111111-1111-1111-1111-111111111111
      client_id: 22222222-2222-2222-2222-222222222222
      environment: public

    CLI:
      log_level: INFO
      threads: 9

Command line flags override the file, and the file overrides the `ARM_*`
environment variables. The client secret cannot be passed as a flag.
"""

import argparse
import logging
import os
import sys
import traceback
from functools import partial
from pathlib import Path

from armprovider import __version__
from armprovider.config import Any, Choice, Config, Dict, Int, Str
from armprovider.credentials import KNOWN_ENVIRONMENTS
from armprovider.provider import configure
from armprovider.registration import RegistrationCoordinator

LOG = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")


# setup.py establishes this as the entry point for the armprovider CLI.
def main():
    """The main entry point for the `armprovider` CLI tool.

    Exits with a `0` status code upon success. Upon error, prints the error
    message to standard error and exits with `1`. Set `ARMPROVIDER_TRACE` to
    include the stack trace.
    """
    try:
        _cli(sys.argv[1:])

    except Exception as e:  # pylint: disable=broad-except
        if os.getenv("ARMPROVIDER_TRACE"):
            traceback.print_exc(file=sys.stderr)

        print(e, file=sys.stderr)
        sys.exit(1)


def _cli(argv, environ=None):
    """Parses `argv`, configures the provider, and prints a summary."""
    environ = os.environ if environ is None else environ
    config = Config.from_file(_config_filename(environ))
    cfg = partial(config.get, "CLI")

    parser = argparse.ArgumentParser(
        prog="armprovider",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        description="Validate AzureRM credentials and register resource providers.",
    )

    group = parser.add_argument_group("credential options")
    group.add_argument(
        "--subscription-id",
        metavar="ID",
        help="subscription in which resources are managed",
    )
    group.add_argument(
        "--client-id",
        metavar="ID",
        help="application ID of the service principal",
    )
    group.add_argument(
        "--tenant-id",
        metavar="ID",
        help="Azure AD tenant of the service principal",
    )
    group.add_argument(
        "--environment",
        choices=KNOWN_ENVIRONMENTS,
        help="Azure cloud to use",
    )

    parser.add_argument(
        "--threads",
        metavar="N",
        type=int,
        default=cfg("threads", type=Int),
        help="number of concurrent provider registrations",
    )

    parser.add_argument(
        "--log-level",
        default=cfg("log_level", type=Choice(*LOG_LEVELS), default="ERROR"),
        choices=LOG_LEVELS,
        help="set the logging level",
    )

    parser.add_argument(
        "--version", action="version", version="%(prog)s " + __version__
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(name)s %(levelname)s [%(threadName)s] %(message)s",
    )

    settings = dict(config.get("Provider", type=Dict(Str, Any), default={}))
    for key in ("subscription_id", "client_id", "tenant_id", "environment"):
        value = getattr(args, key)
        if value:
            settings[key] = value

    coordinator = RegistrationCoordinator(max_workers=args.threads)
    client = configure(settings, environ=environ, coordinator=coordinator)

    print(f"{client.subscription_id}: registered {', '.join(coordinator.namespaces)}")


def _config_filename(environ):
    return environ.get("ARMPROVIDER_CONFIG", Path.home() / ".armprovider.yaml")
