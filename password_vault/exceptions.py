#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Exceptions raised by the vault engine"""


class VaultError(Exception):
    """Base class for every error surfaced to the user"""


class WrongPasswordOrCorrupt(VaultError):
    """The vault could not be decrypted: wrong master password or damaged file"""

    def __init__(self, message=None):
        super().__init__(
            message or "Unable to open vault: wrong master password or corrupted vault file."
        )


class VaultBusy(VaultError):
    """Another process holds the vault lock"""

    def __init__(self, path, timeout):
        super().__init__(
            f"Vault {path} is in use by another process (waited {timeout:g}s). Try again."
        )
        self.path = path
        self.timeout = timeout


class CsvImportError(VaultError):
    """The CSV payload cannot be imported at all"""


class MissingHeader(CsvImportError):
    def __init__(self):
        super().__init__("CSV import failed: a header row with username, password, service is required.")


class MissingRequiredColumn(CsvImportError):
    """
    Raised when the header row lacks one or more required columns

    Attributes:
        columns: Sorted list of the missing column names
    """

    def __init__(self, columns):
        self.columns = sorted(columns)
        super().__init__(
            f"CSV import failed: missing required column(s): {', '.join(self.columns)}"
        )


class MalformedCsv(CsvImportError):
    """
    Raised when the CSV reader cannot get past a broken row

    Attributes:
        line: Line number the reader stopped at
    """

    def __init__(self, line, detail):
        self.line = line
        super().__init__(f"CSV import failed: unreadable data at line {line} ({detail})")


class VaultNotFound(VaultError):
    def __init__(self, path):
        self.path = path
        super().__init__(f"No vault found at {path}. Save a password first to create one.")
