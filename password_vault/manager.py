#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Main manager module for the Secure Password Vault"""

import os
from password_vault import importer, vault as vault_ops
from password_vault.constants import (
    DEFAULT_DATA_DIR, KDF_ITERATIONS, KEYCHAIN_TIMEOUT, LOCK_TIMEOUT, LOG_FILE_NAME,
    VAULT_FILE_NAME,
)
from password_vault.generator import generate_password
from password_vault.keychain import KeychainSync, KeyringSecretStore, SyncStatus
from password_vault.logger import setup_logger
from password_vault.storage import VaultStore


class PasswordVaultManager:
    """
    Integrates storage, search, keychain mirroring and CSV import

    Every method that touches the vault takes the master password and
    performs one complete open, mutate and save cycle. Nothing derived from
    the password outlives the call.
    """

    def __init__(self, data_dir=None, secret_store=None, iterations=KDF_ITERATIONS,
                 lock_timeout=LOCK_TIMEOUT, keychain_timeout=KEYCHAIN_TIMEOUT, logger=None):
        """
        Initialize the password vault with all components

        Args:
            data_dir: Directory holding the vault file and log (default ~/.password_vault)
            secret_store: SecretStore for keychain mirroring (default: system keyring)
            iterations: PBKDF2 work factor
            lock_timeout: Seconds to wait for the vault lock
            keychain_timeout: Seconds to wait for each secret store call
            logger: Logger instance; a file logger in data_dir is set up when omitted
        """
        self.data_dir = os.path.abspath(os.path.expanduser(data_dir or DEFAULT_DATA_DIR))

        # Storage creates the directory the log file lives in
        self.storage = VaultStore(
            os.path.join(self.data_dir, VAULT_FILE_NAME),
            iterations=iterations,
            lock_timeout=lock_timeout,
        )
        self.logger = logger or setup_logger(os.path.join(self.data_dir, LOG_FILE_NAME))
        self.storage.logger = self.logger

        self.keychain = KeychainSync(
            secret_store if secret_store is not None else KeyringSecretStore(),
            timeout=keychain_timeout,
            logger=self.logger,
        )

    def vault_exists(self):
        return self.storage.exists()

    def generate_password(self, length=15, use_special=True, use_uppercase=True, use_digits=True):
        """Generate a random password; see generator.generate_password"""
        return generate_password(length, use_special, use_uppercase, use_digits, self.logger)

    def save_password(self, master_password, service, username, password, keychain=False):
        """
        Save a password, optionally mirroring it to the keychain

        The vault is persisted before the keychain is contacted, so a
        failing or hanging secret store never loses the saved record.

        Args:
            master_password: Master password string
            service: Website or service name
            username: Username (may be empty)
            password: Password to store
            keychain: Whether to mirror the record to the secret store

        Returns:
            Tuple of (UpsertResult, SyncOutcome or None)
        """
        if not service or not password:
            raise ValueError("Service and password are required.")
        username = username or ""

        outcome = None
        with self.storage.lock():
            vault = self.storage.open(master_password, retry=False)
            result = vault_ops.save_password(vault, service, username, password)
            self.storage.save(vault, master_password)
            self.logger.info(f"Password {result.value} for {username} at {service}")

            if keychain:
                _, record = vault_ops.find_record(vault, service, username)
                outcome = self.keychain.sync_one(record)
                if outcome.status in (SyncStatus.ADDED, SyncStatus.UPDATED):
                    self.storage.save(vault, master_password)

        return result, outcome

    def find_password(self, master_password, query, verbose=False):
        """
        Search for passwords by service name

        Read-only: runs without the vault lock.

        Returns:
            NoMatch, SingleMatch or MultipleMatches
        """
        vault = self.storage.open(master_password)
        result = vault_ops.search(vault, query, verbose=verbose)

        # Log search results count (but not the actual results)
        self.logger.info(f"Found {len(result)} results for search term: {query}")
        return result

    def list_services(self, master_password):
        """
        List all services in the vault

        Returns:
            Sorted list of service names
        """
        return vault_ops.services(self.storage.open(master_password))

    def delete_password(self, master_password, service, username):
        """
        Delete a specific password entry

        Returns:
            True if the entry existed and was removed
        """
        with self.storage.transaction(master_password) as vault:
            removed = vault_ops.remove(vault, service, username or "")

        if removed:
            self.logger.info(f"Deleted password for {username} at {service}")
        else:
            self.logger.warning(f"Attempted to delete non-existent password for {username} at {service}")
        return removed

    def sync_keychain(self, master_password, query=None):
        """
        Mirror records into the secret store

        Args:
            master_password: Master password string
            query: Only sync records whose service matches; all records when None

        Returns:
            List of SyncOutcome, one per synced record
        """
        with self.storage.transaction(master_password) as vault:
            records = vault.records if query is None else vault_ops.matching_records(vault, query)
            outcomes = self.keychain.sync_all(records)
        return outcomes

    def reconcile_keychain(self, master_password):
        """
        Repair stale keychain flags by checking the secret store

        Returns:
            ReconcileReport
        """
        with self.storage.transaction(master_password) as vault:
            report = self.keychain.reconcile(vault.records)
        return report

    def change_master_password(self, old_password, new_password):
        """
        Re-encrypt the vault under a new master password

        Returns:
            Number of records re-encrypted
        """
        if not new_password:
            raise ValueError("The new master password must not be empty.")
        return self.storage.change_master_password(old_password, new_password)

    def import_csv(self, master_password, data):
        """
        Import credentials from CSV bytes

        The header is validated before the vault is opened, so an unusable
        file leaves the vault untouched.

        Returns:
            ImportReport
        """
        candidates, skipped = importer.parse(data)
        with self.storage.transaction(master_password) as vault:
            report = importer.merge(vault, candidates, logger=self.logger)
        report.skipped = skipped

        self.logger.info(
            f"CSV import: {report.imported} imported, {report.updated} updated, "
            f"{report.unchanged} unchanged, {report.skipped} skipped"
        )
        return report

    def import_csv_file(self, master_password, csv_path):
        """Read a CSV file and import it; see import_csv"""
        with open(csv_path, 'rb') as f:
            data = f.read()
        return self.import_csv(master_password, data)

    def backup_vault(self, backup_path=None):
        """
        Create a backup of the encrypted vault file

        Returns:
            Path to the backup, or None when there is no vault yet
        """
        return self.storage.create_backup(backup_path)

    def storage_info(self):
        info = self.storage.get_storage_info()
        info["log_file"] = os.path.join(self.data_dir, LOG_FILE_NAME)
        return info
