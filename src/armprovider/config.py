#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Provides a YAML/JSON provider config reader with type-checked values.

## Overview

`Config` wraps the (possibly nested) dict of provider settings supplied by the
caller. It provides for default values, mandatory values, environment variable
fallbacks, and type-checking of values using the type objects defined in this
module. `YAMLConfig` and `JSONConfig` load the same structure from a file and
are registered by extension, so `Config.from_file` picks the right parser:

    c = Config.from_file('~/.armprovider.yaml')

## Reading Values

Assuming the file contains the following YAML:

    Provider:
        subscription_id: 00000000-0000-0000-0000-000000000000
        tenant_id: 11111111-1111-1111-1111-111111111111
        environment: public
    CLI:
        threads: 9

Values are read by key path. Each of the provider's credential settings may
also name an environment variable to consult when the key is absent, which is
how `ARM_CLIENT_SECRET` and friends are honored:

    c.get('Provider', 'tenant_id', type=Str)
    c.get('Provider', 'client_secret', type=Str, env='ARM_CLIENT_SECRET', default='')
    c.get('CLI', 'threads', type=Int, default=9)

If a value does not match the expected type, a `TypeError` is raised.
"""

import json
import logging
import os
from functools import reduce
from pathlib import Path

import yaml

LOG = logging.getLogger(__name__)

# pylint: disable=unidiomatic-typecheck
#
# Because isinstance(True, int) is true, we do not rely on isinstance for our
# type checking in this module as we want to match exact types.


class Config:
    """A `Config` can read type-checked values from a Python dictionary.

    The class also holds a registry of parsers keyed by file extension, so
    provider settings can be loaded from YAML or JSON files.
    """

    _filetypes = {}

    @classmethod
    def register_filetype(cls, config_class, *extensions):
        """Register a parser for files with one of the specified extensions."""
        for ext in extensions:
            cls._filetypes[ext] = config_class

    @classmethod
    def from_file(cls, filename, must_exist=False):
        """Factory method to load a `Config` from a filename.

        The extension of `filename` selects the parser. If `must_exist` is
        true, a `FileNotFoundError` is raised when the file is missing,
        otherwise an empty `Config` is returned.
        """
        path = Path(filename).expanduser()

        if not path.is_file():
            if must_exist:
                raise FileNotFoundError(f"Config file not found: {filename}")
            LOG.debug("no config file at %s, using empty config", path)
            return Config({})

        if path.suffix not in cls._filetypes:
            raise ValueError(f"Unregistered file type extension: {path.suffix}")

        LOG.info("loading config from %s", path)
        with path.open(encoding="utf-8") as f:
            return cls._filetypes[path.suffix](f)

    def __init__(self, d):
        self.conf = d or {}

    def get(self, *keys, default=None, type=None, must_exist=False, env=None, environ=None):
        """Return the specified value from the `Config`.

        The value is found by following `keys` into the configuration. When
        nothing (or an empty string) is stored there and `env` names an
        environment variable that is set, the variable's value is used
        instead. `environ` is the mapping consulted, `os.environ` by default.
        Failing both, `default` is returned unless `must_exist` is true, in
        which case a `ValueError` is raised.

        If `type` is given the value must type-check against it, otherwise a
        `TypeError` is raised:

            c.get('Provider', 'client_id', type=Str, env='ARM_CLIENT_ID', default='')
            c.get('Provider', 'environment', type=Choice('public', 'china'))
            c.get('CLI', 'threads', type=Int, default=9)
        """
        # pylint: disable=redefined-builtin,too-many-arguments

        # Follow the list of keys into the dictionary. A missing key yields {}.
        try:
            value = reduce(lambda a, p: a.get(p, {}), keys, self.conf)
        except AttributeError as e:
            raise ValueError(
                f"Error in config: {'->'.join(keys[:-1])}: not a dictionary"
            ) from e

        # For settings with an environment fallback, an empty value is unset.
        if env and value in ("", None):
            value = {}

        if value == {} and env:
            environ = os.environ if environ is None else environ
            if environ.get(env):
                LOG.debug("using %s for %s", env, "->".join(keys))
                value = environ[env]

        if value == {}:
            if must_exist:
                raise ValueError(f"Error in config: {'->'.join(keys)}: must be set")
            value = default

        if value is None:
            return value

        if not type:
            return value

        if type.type_check(value):
            return value

        raise TypeError(
            f"Error in config: {'->'.join(keys)}: not a {type}: {repr(value)}"
        )


class YAMLConfig(Config):
    """Loads a YAML configuration from a stream."""

    def __init__(self, stream):
        super().__init__(yaml.safe_load(stream))


class JSONConfig(Config):
    """Loads a JSON configuration from a stream."""

    def __init__(self, stream):
        super().__init__(json.load(stream))


Config.register_filetype(JSONConfig, ".json", ".jsn")
Config.register_filetype(YAMLConfig, ".yaml", ".yml")


class Type:
    """Represents a type that can be used in type-check comparisons."""

    def type_check(self, obj):
        """Returns true if obj is a type matching this `Type`."""
        raise NotImplementedError

    def __str__(self):
        raise NotImplementedError


class Or(Type):
    """Represents a type that is one of the `config_types`."""

    def __init__(self, *config_types):
        self.config_types = config_types

    def type_check(self, obj):
        return any(t.type_check(obj) for t in self.config_types)

    def __str__(self):
        s = " or ".join(str(t) for t in self.config_types)
        return "(" + s + ")"


class Const(Type):
    """Represents a constant value."""

    def __init__(self, const):
        self.const = const

    def type_check(self, obj):
        # True == 1 in python, so the types must match before equality counts.
        if type(obj) != type(self.const):  # noqa: E721
            return False
        return obj == self.const

    def __str__(self):
        return f"constant '{self.const}'"


class Choice(Or):
    """Represents a choice of constants."""

    def __init__(self, *constants):
        super().__init__(*[Const(c) for c in constants])


class Scalar(Type):
    """Represents a type that is a scalar matching one of the builtin types."""

    def __init__(self, type_):
        self.type = type_

    def type_check(self, obj):
        return type(obj) == self.type  # noqa: E721

    def __str__(self):
        return self.type.__name__


class AnyType(Type):
    """Represents any type."""

    def type_check(self, obj):
        return True

    def __str__(self):
        return "any type"


Str = Scalar(str)
"""Singleton representing a str."""

Int = Scalar(int)
"""Singleton representing an int."""

Any = AnyType()
"""Singleton representing any type."""


class Dict(Type):
    """Represents a dict with keys of `key_type` and values of `value_type`."""

    def __init__(self, key_type, value_type):
        self.key_type = key_type
        self.value_type = value_type

    def type_check(self, obj):
        if type(obj) != dict:  # noqa: E721
            return False
        return all(self.key_type.type_check(k) for k in obj.keys()) and all(
            self.value_type.type_check(v) for v in obj.values()
        )

    def __str__(self):
        return f"dict with {self.key_type} keys and {self.value_type} values"
