#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Constants for the Secure Password Vault"""

import os

# Define character sets for password generation
LOWERCASE = list("abcdefghijklmnopqrstuvwxyz")
UPPERCASE = list("ABCDEFGHIJKLMNOPQRSTUVWXYZ")
DIGITS = list("0123456789")
SPECIAL_CHARS = list("!@#$%^*)(")

# Key derivation and vault file layout
KDF_ITERATIONS = 390_000
KEY_LENGTH = 32  # AES-256
SALT_LENGTH = 16
NONCE_LENGTH = 12  # 96-bit nonce for GCM
FORMAT_VERSION = 1

# Locking and external calls
LOCK_TIMEOUT = 5.0  # seconds
LOCK_POLL_INTERVAL = 0.05
READ_RETRY_DELAY = 0.1
KEYCHAIN_TIMEOUT = 10.0  # seconds per secret store call

# Masking for multi-match search results
MASKED_PASSWORD = "********"

# Default locations
DEFAULT_DATA_DIR = os.path.join(os.path.expanduser("~"), ".password_vault")
VAULT_FILE_NAME = ".vault.enc"
LOG_FILE_NAME = "password_vault.log"
BACKUPS_DIR_NAME = "backups"
