#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Storage utilities for the Secure Password Vault"""

import json
import os
import shutil
import tempfile
import time
from contextlib import contextmanager
from datetime import datetime
from password_vault.constants import (
    BACKUPS_DIR_NAME, FORMAT_VERSION, KDF_ITERATIONS, LOCK_TIMEOUT, NONCE_LENGTH,
    READ_RETRY_DELAY, SALT_LENGTH,
)
from password_vault.encryption import CryptoBox, generate_salt, wipe
from password_vault.exceptions import VaultNotFound, WrongPasswordOrCorrupt
from password_vault.locking import VaultLock
from password_vault.models import CredentialRecord, Vault

HEADER_LENGTH = 1 + SALT_LENGTH + NONCE_LENGTH
TAG_LENGTH = 16


def pack_vault_file(salt, nonce, ciphertext):
    """
    Lay out the on-disk vault: [version][salt][nonce][ciphertext]

    Args:
        salt: Key-derivation salt
        nonce: AES-GCM nonce used for this write
        ciphertext: Encrypted payload including the GCM tag

    Returns:
        Bytes ready to be written to the vault file
    """
    return bytes([FORMAT_VERSION]) + salt + nonce + ciphertext


def unpack_vault_file(data):
    """
    Split vault file bytes into (salt, nonce, ciphertext)

    Raises:
        WrongPasswordOrCorrupt: If the file is truncated or of an unknown version
    """
    if len(data) < HEADER_LENGTH + TAG_LENGTH or data[0] != FORMAT_VERSION:
        raise WrongPasswordOrCorrupt()
    salt = data[1:1 + SALT_LENGTH]
    nonce = data[1 + SALT_LENGTH:HEADER_LENGTH]
    return salt, nonce, data[HEADER_LENGTH:]


def serialize_records(records):
    """Serialize records, in order, to the plaintext payload"""
    return bytearray(json.dumps([record.to_dict() for record in records]).encode("utf-8"))


def deserialize_records(payload):
    """
    Parse a decrypted payload back into records

    Raises:
        WrongPasswordOrCorrupt: If the payload does not hold a record list
    """
    try:
        items = json.loads(payload.decode("utf-8"))
        return [CredentialRecord.from_dict(item) for item in items]
    except (ValueError, KeyError, TypeError, AttributeError):
        raise WrongPasswordOrCorrupt() from None


class VaultStore:
    """Handles persistence of the encrypted vault file"""

    def __init__(self, vault_path, iterations=KDF_ITERATIONS, lock_timeout=LOCK_TIMEOUT, logger=None):
        """
        Initialize the storage handler

        Args:
            vault_path: Path to the encrypted vault file
            iterations: PBKDF2 work factor used for every key derivation
            lock_timeout: Seconds to wait for the vault lock
            logger: Optional logger instance
        """
        self.vault_path = os.path.abspath(vault_path)
        self.data_dir = os.path.dirname(self.vault_path)
        self.backups_dir = os.path.join(self.data_dir, BACKUPS_DIR_NAME)
        self.lock_timeout = lock_timeout
        self.logger = logger
        self.crypto = CryptoBox(iterations)

        self._ensure_dir_exists()

    def _ensure_dir_exists(self):
        """Create the vault directory if it doesn't exist"""
        if not os.path.exists(self.data_dir):
            os.makedirs(self.data_dir, mode=0o700)  # Restricted permissions for secrets
            if self.logger:
                self.logger.info(f"Created data directory: {self.data_dir}")

    def exists(self):
        """True when a non-empty vault file is present"""
        return os.path.exists(self.vault_path) and os.path.getsize(self.vault_path) > 0

    def lock(self):
        """Return the exclusive lock guarding this vault file"""
        return VaultLock(self.vault_path, timeout=self.lock_timeout, logger=self.logger)

    def _read_file(self, retry):
        """
        Read the raw vault file

        Args:
            retry: Whether to retry once on a transient read error

        Returns:
            File bytes, or None if the file doesn't exist
        """
        attempts = 2 if retry else 1
        for attempt in range(1, attempts + 1):
            try:
                with open(self.vault_path, 'rb') as f:
                    return f.read()
            except FileNotFoundError:
                return None
            except OSError as e:
                if attempt == attempts:
                    raise
                if self.logger:
                    self.logger.warning(f"Transient error reading vault, retrying: {e}")
                time.sleep(READ_RETRY_DELAY)
        return None

    def open(self, password, retry=True):
        """
        Load and decrypt the vault

        A missing or empty file is a fresh vault: no records and a new salt
        that will be persisted by the first save.

        Args:
            password: Master password string
            retry: Retry once when a read races a concurrent replacement;
                   callers holding the lock pass False

        Returns:
            Vault instance

        Raises:
            WrongPasswordOrCorrupt: If decryption or parsing fails
        """
        data = self._read_file(retry)
        if not data:
            if self.logger:
                self.logger.info(f"No vault at {self.vault_path}, starting an empty one")
            return Vault(records=[], salt=generate_salt())

        try:
            salt, nonce, ciphertext = unpack_vault_file(data)
        except WrongPasswordOrCorrupt:
            if not retry:
                raise
            # A half-visible replacement looks truncated; read once more
            time.sleep(READ_RETRY_DELAY)
            data = self._read_file(retry=False)
            if not data:
                return Vault(records=[], salt=generate_salt())
            salt, nonce, ciphertext = unpack_vault_file(data)

        payload = None
        try:
            payload = self.crypto.decrypt(ciphertext, salt, nonce, password)
            records = deserialize_records(payload)
        except WrongPasswordOrCorrupt:
            if self.logger:
                self.logger.warning("Failed to open vault: wrong master password or corrupted file")
            raise
        finally:
            wipe(payload)

        if self.logger:
            self.logger.info(f"Opened vault with {len(records)} records")
        return Vault(records=records, salt=salt)

    def save(self, vault, password):
        """
        Encrypt the vault and atomically replace the vault file

        Args:
            vault: Vault instance to persist
            password: Master password string
        """
        if vault.salt is None:
            vault.salt = generate_salt()

        payload = serialize_records(vault.records)
        try:
            ciphertext, salt, nonce = self.crypto.encrypt(payload, password, salt=vault.salt)
        finally:
            wipe(payload)

        self._write_atomic(pack_vault_file(salt, nonce, ciphertext))
        if self.logger:
            self.logger.info(f"Saved vault with {len(vault.records)} records")

    def _write_atomic(self, data):
        """Write to a temp file beside the vault, then rename it over the vault"""
        fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, prefix=".vault-", suffix=".tmp")
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.vault_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    @contextmanager
    def transaction(self, password):
        """
        Open the vault under the lock and save it when the block succeeds

        The lock is held from before decryption until after the atomic
        rename. If the block raises, nothing is written.

        Args:
            password: Master password string

        Yields:
            The decrypted Vault
        """
        with self.lock():
            vault = self.open(password, retry=False)
            yield vault
            self.save(vault, password)

    def change_master_password(self, old_password, new_password):
        """
        Re-key the vault under a new master password

        The vault is decrypted with the old password, a backup of the old
        file is taken, and it is re-encrypted under a new salt and the new
        password with an atomic replace.

        Args:
            old_password: Current master password
            new_password: New master password

        Returns:
            Number of records re-encrypted

        Raises:
            VaultNotFound: If there is no vault file to re-key
            WrongPasswordOrCorrupt: If the old password does not open the vault
        """
        with self.lock():
            if not self.exists():
                raise VaultNotFound(self.vault_path)
            vault = self.open(old_password, retry=False)
            self.create_backup()
            vault.salt = generate_salt()
            self.save(vault, new_password)

        if self.logger:
            self.logger.info(f"Master password changed, {len(vault.records)} records re-encrypted")
        return len(vault.records)

    def create_backup(self, backup_path=None):
        """
        Create a backup of the encrypted vault file

        Args:
            backup_path: Optional custom backup path

        Returns:
            Path to backup file or None if there is no vault yet
        """
        if not self.exists():
            return None

        if not os.path.exists(self.backups_dir):
            os.makedirs(self.backups_dir, mode=0o700)
            if self.logger:
                self.logger.info(f"Created backups directory: {self.backups_dir}")

        if backup_path is None:
            timestamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
            backup_path = os.path.join(self.backups_dir, f".vault_backup_{timestamp}.enc")

        shutil.copy2(self.vault_path, backup_path)
        if self.logger:
            self.logger.info(f"Backup created at: {backup_path}")
        return backup_path

    def get_storage_info(self):
        """
        Get information about the storage files

        Returns:
            Dictionary with storage information
        """
        info = {
            "data_directory": self.data_dir,
            "vault_file": self.vault_path,
            "lock_file": self.vault_path + ".lock",
            "backups_directory": self.backups_dir,
        }

        if os.path.exists(self.vault_path):
            info["vault_file_size"] = os.path.getsize(self.vault_path)
            info["last_modified"] = time.ctime(os.path.getmtime(self.vault_path))

        return info
