#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Encryption utilities for the Secure Password Vault

The master password is turned into a 256-bit key with PBKDF2-HMAC-SHA256 and
the vault payload is sealed with AES-256-GCM. The salt lives in the vault file
header and is reused for every write of the same vault; a fresh nonce is
generated for every write.
"""

import os
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from password_vault.constants import (
    FORMAT_VERSION, KDF_ITERATIONS, KEY_LENGTH, NONCE_LENGTH, SALT_LENGTH,
)
from password_vault.exceptions import WrongPasswordOrCorrupt


def generate_salt():
    """
    Generate a random salt for key derivation

    Returns:
        Random salt bytes
    """
    return os.urandom(SALT_LENGTH)


def generate_nonce():
    """Generate a random nonce for one AES-GCM encryption"""
    return os.urandom(NONCE_LENGTH)


def wipe(buffer):
    """
    Overwrite a mutable buffer with zeros

    Args:
        buffer: bytearray (or None) to clear in place
    """
    if buffer is not None:
        buffer[:] = bytes(len(buffer))


class MasterKey:
    """
    Key derived from the master password, scoped to a ``with`` block

    The derived key is kept in a bytearray and zeroed when the block exits,
    whether it exits normally or through an exception.
    """

    def __init__(self, password, salt, iterations=KDF_ITERATIONS):
        """
        Args:
            password: Master password string
            salt: Salt bytes read from (or about to be written to) the vault
            iterations: PBKDF2 work factor
        """
        self.password = password
        self.salt = salt
        self.iterations = iterations
        self.key = None

    def __enter__(self):
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=self.salt,
            iterations=self.iterations,
        )
        self.key = bytearray(kdf.derive(self.password.encode("utf-8")))
        return self.key

    def __exit__(self, exc_type, exc_value, traceback):
        wipe(self.key)
        self.key = None
        return False


class CryptoBox:
    """Symmetric encryption of an opaque payload under a master password"""

    def __init__(self, iterations=KDF_ITERATIONS):
        self.iterations = iterations

    @staticmethod
    def _associated_data(salt):
        # Binds the header to the ciphertext so a swapped salt fails the tag
        return bytes([FORMAT_VERSION]) + salt

    def encrypt(self, plaintext, password, salt=None):
        """
        Encrypt a payload under the master password

        Args:
            plaintext: Bytes to encrypt
            password: Master password string
            salt: Existing vault salt; a new one is generated when omitted

        Returns:
            Tuple of (ciphertext, salt, nonce)
        """
        if salt is None:
            salt = generate_salt()
        nonce = generate_nonce()

        with MasterKey(password, salt, self.iterations) as key:
            ciphertext = AESGCM(key).encrypt(nonce, plaintext, self._associated_data(salt))

        return ciphertext, salt, nonce

    def decrypt(self, ciphertext, salt, nonce, password):
        """
        Decrypt a payload produced by encrypt()

        Args:
            ciphertext: Encrypted bytes including the GCM tag
            salt: Salt stored in the vault header
            nonce: Nonce stored in the vault header
            password: Master password string

        Returns:
            Decrypted payload as a bytearray (callers wipe it after use)

        Raises:
            WrongPasswordOrCorrupt: If authentication fails for any reason
        """
        if len(salt) != SALT_LENGTH or len(nonce) != NONCE_LENGTH:
            raise WrongPasswordOrCorrupt()

        with MasterKey(password, salt, self.iterations) as key:
            try:
                plaintext = AESGCM(key).decrypt(nonce, ciphertext, self._associated_data(salt))
            except InvalidTag:
                # Never tell the user whether the password or the file is at fault
                raise WrongPasswordOrCorrupt() from None

        return bytearray(plaintext)
