#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Data model for the Secure Password Vault"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

# Keychain sync states kept on each record
KEYCHAIN_MIRRORED = "mirrored"
KEYCHAIN_STALE = "stale"


def utc_now():
    """Return the current time as a timezone-aware UTC datetime"""
    return datetime.now(timezone.utc)


@dataclass
class CredentialRecord:
    """One stored credential, identified by (service, username)"""

    service: str
    username: str
    password: str
    updated_at: datetime = field(default_factory=utc_now)
    keychain: Optional[str] = None

    def __post_init__(self):
        if not self.service:
            raise ValueError("service must not be empty")
        if not self.password:
            raise ValueError("password must not be empty")
        if self.username is None:
            self.username = ""

    def same_identity(self, service, username):
        """Services compare case-insensitively, usernames exactly"""
        return self.service.lower() == service.lower() and self.username == username

    @property
    def mirrored(self):
        return self.keychain == KEYCHAIN_MIRRORED

    def to_dict(self):
        return {
            "service": self.service,
            "username": self.username,
            "password": self.password,
            "updated_at": self.updated_at.isoformat(),
            "keychain": self.keychain,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            service=data["service"],
            username=data.get("username", ""),
            password=data["password"],
            updated_at=datetime.fromisoformat(data["updated_at"]),
            keychain=data.get("keychain"),
        )


@dataclass
class Vault:
    """
    The decrypted, ordered record collection of one vault file

    Attributes:
        records: Records in insertion order
        salt: Key-derivation salt persisted in the file header
    """

    records: List[CredentialRecord] = field(default_factory=list)
    salt: Optional[bytes] = None

    def __len__(self):
        return len(self.records)

    def __iter__(self):
        return iter(self.records)


class UpsertResult(Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class RecordView:
    """A record as exposed to callers, with the password possibly masked"""

    service: str
    username: str
    password: str
    updated_at: datetime
    masked: bool = False


class SearchResult:
    """Base of the typed search outcome; see NoMatch, SingleMatch, MultipleMatches"""

    def __len__(self):
        return 0


@dataclass(frozen=True)
class NoMatch(SearchResult):
    query: str

    def __len__(self):
        return 0


@dataclass(frozen=True)
class SingleMatch(SearchResult):
    """Exactly one record matched; the real password is always exposed"""

    query: str
    record: RecordView

    def __len__(self):
        return 1


@dataclass(frozen=True)
class MultipleMatches(SearchResult):
    """Several records matched; passwords are masked unless requested verbosely"""

    query: str
    views: tuple

    def __len__(self):
        return len(self.views)
