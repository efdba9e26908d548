#
# Copyright 2019 FMR LLC <opensource@fidelity.com>
#
# SPDX-License-Identifier: MIT
#
"""Provides a registry of locks keyed by string.

## Overview

Several Azure resources are children of a single Azure object: the subnets of
a virtual network, or the routes of a route table. Azure applies a change to
such a child by rewriting the parent, so two handlers updating two subnets of
the same network at the same time can undo each other's work. Handlers avoid
this by taking the lock named after the parent before changing a child:

    with ARM_MUTEX_KV.locked(vnet_id):
        ...

`MutexKV` creates a lock the first time a key is used and keeps it for the
life of the process. Callers using the same key are serialized; callers using
different keys never wait on each other. `ARM_MUTEX_KV` is the single
registry shared by every handler in the process.
"""

import logging
import threading
from contextlib import contextmanager

LOG = logging.getLogger(__name__)


class MutexKV:
    """A thread-safe map of string keys to locks."""

    def __init__(self):
        self._lock = threading.Lock()
        self._store = {}

    def lock(self, key):
        """Blocks until the lock for `key` is acquired."""
        LOG.debug("locking %r", key)
        self._get(key).acquire()
        LOG.debug("locked %r", key)

    def unlock(self, key):
        """Releases the lock for `key`.

        A `RuntimeError` is raised if the lock for `key` is not held.
        """
        LOG.debug("unlocking %r", key)
        self._get(key).release()
        LOG.debug("unlocked %r", key)

    @contextmanager
    def locked(self, key):
        """Context manager holding the lock for `key` for the enclosed block.

        The lock is released however the block exits.
        """
        self.lock(key)
        try:
            yield
        finally:
            self.unlock(key)

    def _get(self, key):
        with self._lock:
            mutex = self._store.get(key)
            if mutex is None:
                mutex = self._store[key] = threading.Lock()
            return mutex


ARM_MUTEX_KV = MutexKV()
"""The process-wide lock registry for Azure Resource Manager resources."""
