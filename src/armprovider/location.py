#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Helpers to compare Azure names the way Azure does."""


def normalize_location(location):
    """Returns the API form of a region name.

    Human-readable names such as "West US" become the value used and returned
    by the Azure API, "westus". State tracks the API form as it is easier to
    go from the human form to the canonical form than the other way around.
    """
    return location.lower().replace(" ", "")


def names_equal_ignoring_case(old, new):
    """Returns true if two resource group names refer to the same group.

    Resource group names can be capitalized but Azure stores them in lower
    case, so a change in case alone must not replace the group.
    """
    return old.lower() == new.lower()
