#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Cross-process advisory lock guarding the vault file"""

import os
import time
from password_vault.constants import LOCK_POLL_INTERVAL, LOCK_TIMEOUT
from password_vault.exceptions import VaultBusy

if os.name == "nt":
    import msvcrt
else:
    import fcntl


def _try_lock(fd):
    """Attempt a non-blocking exclusive lock; return True on success"""
    try:
        if os.name == "nt":
            msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)
        else:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except (BlockingIOError, PermissionError):
        return False
    except OSError:
        # msvcrt reports contention as a generic OSError (EACCES / EDEADLOCK)
        if os.name == "nt":
            return False
        raise
    return True


def _unlock(fd):
    if os.name == "nt":
        os.lseek(fd, 0, os.SEEK_SET)
        msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)
    else:
        fcntl.flock(fd, fcntl.LOCK_UN)


class VaultLock:
    """
    Exclusive lock on ``<vault path>.lock``, held for one mutating operation

    The lock is advisory: it only excludes other VaultLock holders, which is
    every code path that writes the vault. Acquisition polls until the
    timeout and then raises VaultBusy instead of blocking indefinitely.
    """

    def __init__(self, vault_path, timeout=LOCK_TIMEOUT, logger=None):
        """
        Args:
            vault_path: Path of the vault file being protected
            timeout: Seconds to wait for the lock before giving up
            logger: Optional logger instance
        """
        self.vault_path = vault_path
        self.lock_path = vault_path + ".lock"
        self.timeout = timeout
        self.logger = logger
        self._fd = None

    @property
    def locked(self):
        return self._fd is not None

    def acquire(self):
        """
        Acquire the lock, waiting at most ``timeout`` seconds

        Raises:
            VaultBusy: If another process still holds the lock
        """
        fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o600)
        deadline = time.monotonic() + self.timeout

        while not _try_lock(fd):
            if time.monotonic() >= deadline:
                os.close(fd)
                if self.logger:
                    self.logger.warning(f"Timed out waiting for vault lock {self.lock_path}")
                raise VaultBusy(self.vault_path, self.timeout)
            time.sleep(LOCK_POLL_INTERVAL)

        self._fd = fd
        if self.logger:
            self.logger.debug(f"Acquired vault lock {self.lock_path}")

    def release(self):
        """Release the lock if held"""
        if self._fd is None:
            return
        try:
            _unlock(self._fd)
        finally:
            os.close(self._fd)
            self._fd = None
        if self.logger:
            self.logger.debug(f"Released vault lock {self.lock_path}")

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.release()
        return False
