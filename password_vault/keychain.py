#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Keychain mirroring for the Secure Password Vault

Records can be copied into the operating system's secret store. Each record
remembers whether it has been mirrored ("mirrored"), was mirrored before its
password changed ("stale") or was never mirrored (None). That state lives in
the encrypted vault and is repaired by reconcile() when it drifts from what
the secret store actually holds.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
import keyring
from keyring.errors import KeyringError
from password_vault.constants import KEYCHAIN_TIMEOUT
from password_vault.models import KEYCHAIN_MIRRORED, KEYCHAIN_STALE


class SecretStoreError(Exception):
    """A secret store call failed"""


class SecretStoreTimeout(SecretStoreError):
    """A secret store call did not return in time"""


class SecretStore:
    """
    Capability for an external secret store

    Implementations raise SecretStoreError (or any other exception) when a
    call fails; every call is treated as independent and fallible.
    """

    def set(self, service, username, password):
        raise NotImplementedError

    def get(self, service, username):
        """Return the stored password, or None when there is no entry"""
        raise NotImplementedError


class KeyringSecretStore(SecretStore):
    """SecretStore backed by the platform keyring (macOS Keychain, Secret Service, ...)"""

    def set(self, service, username, password):
        try:
            keyring.set_password(service, username, password)
        except KeyringError as e:
            raise SecretStoreError(f"keyring rejected {service}: {e}") from e

    def get(self, service, username):
        try:
            return keyring.get_password(service, username)
        except KeyringError as e:
            raise SecretStoreError(f"keyring lookup failed for {service}: {e}") from e


class SyncStatus(Enum):
    ADDED = "added"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncOutcome:
    service: str
    username: str
    status: SyncStatus
    reason: Optional[str] = None

    @property
    def failed(self):
        return self.status is SyncStatus.FAILED


@dataclass
class ReconcileReport:
    """Result of re-deriving sync state from the secret store"""

    checked: int = 0
    repaired: int = 0
    failed: List[SyncOutcome] = field(default_factory=list)


class KeychainSync:
    """Mirrors vault records into a SecretStore and tracks what was mirrored"""

    def __init__(self, store, timeout=KEYCHAIN_TIMEOUT, logger=None):
        """
        Args:
            store: SecretStore implementation
            timeout: Seconds to wait for each secret store call
            logger: Optional logger instance
        """
        self.store = store
        self.timeout = timeout
        self.logger = logger

    def _call(self, func, *args):
        """
        Run one secret store call on a daemon thread with a bounded wait

        A call that hangs is abandoned; the daemon thread cannot keep the
        process alive.

        Raises:
            SecretStoreTimeout: If the call does not finish in time
        """
        result = {}

        def target():
            try:
                result["value"] = func(*args)
            except Exception as e:
                result["error"] = e

        worker = threading.Thread(target=target, daemon=True)
        worker.start()
        worker.join(self.timeout)

        if worker.is_alive():
            raise SecretStoreTimeout(f"timed out after {self.timeout:g}s")
        if "error" in result:
            raise result["error"]
        return result.get("value")

    def sync_one(self, record):
        """
        Mirror one record into the secret store

        The record's sync state is updated in place on success; the caller
        persists the vault afterwards. A record already flagged mirrored is
        not re-checked against the store; reconcile() repairs such flags.

        Args:
            record: CredentialRecord to mirror

        Returns:
            SyncOutcome for the record
        """
        if record.keychain == KEYCHAIN_MIRRORED:
            return SyncOutcome(record.service, record.username, SyncStatus.UNCHANGED)

        try:
            self._call(self.store.set, record.service, record.username, record.password)
        except Exception as e:
            reason = str(e) or e.__class__.__name__
            if self.logger:
                self.logger.warning(f"Keychain sync failed for {record.username} at {record.service}: {reason}")
            return SyncOutcome(record.service, record.username, SyncStatus.FAILED, reason)

        status = SyncStatus.ADDED if record.keychain is None else SyncStatus.UPDATED
        record.keychain = KEYCHAIN_MIRRORED
        if self.logger:
            self.logger.info(f"Keychain entry {status.value} for {record.username} at {record.service}")
        return SyncOutcome(record.service, record.username, status)

    def sync_all(self, records):
        """
        Mirror every record, continuing past individual failures

        Args:
            records: Iterable of CredentialRecord (a Vault works)

        Returns:
            List of SyncOutcome, one per record, in the same order
        """
        outcomes = [self.sync_one(record) for record in records]
        if self.logger:
            failures = sum(1 for outcome in outcomes if outcome.failed)
            self.logger.info(f"Keychain sync finished: {len(outcomes)} records, {failures} failed")
        return outcomes

    def reconcile(self, records):
        """
        Re-derive each record's sync state from the secret store

        A record is "mirrored" when the store holds its exact password,
        "stale" when the store holds another password, and unmirrored when
        the store has no entry. Records whose lookup fails keep their state.

        Args:
            records: Iterable of CredentialRecord

        Returns:
            ReconcileReport
        """
        report = ReconcileReport()
        for record in records:
            report.checked += 1
            try:
                stored = self._call(self.store.get, record.service, record.username)
            except Exception as e:
                report.failed.append(SyncOutcome(
                    record.service, record.username, SyncStatus.FAILED, str(e) or e.__class__.__name__
                ))
                continue

            if stored is None:
                state = None
            elif stored == record.password:
                state = KEYCHAIN_MIRRORED
            else:
                state = KEYCHAIN_STALE

            if state != record.keychain:
                record.keychain = state
                report.repaired += 1

        if self.logger:
            self.logger.info(
                f"Keychain reconcile: {report.checked} checked, {report.repaired} repaired, "
                f"{len(report.failed)} failed"
            )
        return report
