"""Locks for channels shared between readers.

A reader positions the channel before every run, so a traversal must not be
interleaved with another one on the same channel. Synchronizers hand out one
lock per channel key.

"""
import os
import re
from collections import defaultdict
from threading import Lock
from typing import Protocol


class Synchronizer(Protocol):
    """Base class for synchronizers."""

    def __getitem__(self, key):
        # see subclasses
        ...


def channel_key(channel) -> str:
    """Default lock key for a channel: the file name when the channel has one,
    otherwise the identity of the object."""
    name = getattr(channel, 'name', None)
    if isinstance(name, str) and name:
        return os.path.abspath(name)
    return '%s-%x' % (type(channel).__name__, id(channel))


class ThreadSynchronizer(Synchronizer):
    """Provides synchronization using thread locks."""

    def __init__(self):
        self.mutex = Lock()
        self.locks = defaultdict(Lock)

    def __getitem__(self, key):
        with self.mutex:
            return self.locks[key]

    def __getstate__(self):
        return True

    def __setstate__(self, *args):
        # locks can't be pickled, start with fresh ones
        self.__init__()


class ProcessSynchronizer(Synchronizer):
    """Provides synchronization using file locks via the
    `fasteners <https://fasteners.readthedocs.io/en/latest/api/inter_process/>`_
    package.

    Parameters
    ----------
    path : string
        Directory shared by all processes, where one lock file is created per
        channel key. Created if missing.

    """

    def __init__(self, path):
        self.path = path

    def lock_path(self, key) -> str:
        # keys are usually file paths, flatten them to a single file name
        name = re.sub(r'[^A-Za-z0-9_.-]+', '_', str(key)).strip('_') or 'channel'
        return os.path.join(self.path, name + '.lock')

    def __getitem__(self, key):
        import fasteners

        os.makedirs(self.path, exist_ok=True)
        return fasteners.InterProcessLock(self.lock_path(key))

    # pickling and unpickling should be handled automatically
