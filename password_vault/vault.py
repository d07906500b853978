#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""In-memory operations on a decrypted vault"""

from dataclasses import replace
from password_vault.constants import MASKED_PASSWORD
from password_vault.models import (
    KEYCHAIN_MIRRORED, KEYCHAIN_STALE, CredentialRecord, MultipleMatches,
    NoMatch, RecordView, SingleMatch, UpsertResult, utc_now,
)


def find_record(vault, service, username):
    """
    Find the record with the given identity

    Returns:
        Tuple of (index, record), or (None, None) when absent
    """
    for index, record in enumerate(vault.records):
        if record.same_identity(service, username):
            return index, record
    return None, None


def upsert(vault, record):
    """
    Insert a record, or update the password of the existing one

    An existing (service, username) entry keeps its position; only its
    password and timestamp change. Saving the same password again leaves
    the record untouched.

    Args:
        vault: Vault to modify
        record: CredentialRecord carrying the new values

    Returns:
        UpsertResult telling whether the record was inserted, updated or unchanged
    """
    _, existing = find_record(vault, record.service, record.username)

    if existing is None:
        vault.records.append(CredentialRecord(
            service=record.service,
            username=record.username,
            password=record.password,
            updated_at=record.updated_at,
            keychain=record.keychain,
        ))
        return UpsertResult.INSERTED

    if existing.password == record.password:
        return UpsertResult.UNCHANGED

    existing.password = record.password
    existing.updated_at = record.updated_at
    if existing.keychain == KEYCHAIN_MIRRORED:
        existing.keychain = KEYCHAIN_STALE
    return UpsertResult.UPDATED


def save_password(vault, service, username, password, now=None):
    """Convenience wrapper building the record with a fresh timestamp"""
    record = CredentialRecord(service, username or "", password, updated_at=now or utc_now())
    return upsert(vault, record)


def remove(vault, service, username):
    """
    Delete a specific record

    Returns:
        True if a record was removed, False if none matched
    """
    index, _ = find_record(vault, service, username)
    if index is None:
        return False
    del vault.records[index]
    return True


def matching_records(vault, query):
    """
    Records whose service contains the query, case-insensitively

    Ranked most recently updated first; records updated at the same instant
    keep their insertion order.
    """
    needle = query.lower()
    matches = [record for record in vault.records if needle in record.service.lower()]
    return sorted(matches, key=lambda record: record.updated_at, reverse=True)


def _view(record, masked=False):
    return RecordView(
        service=record.service,
        username=record.username,
        password=MASKED_PASSWORD if masked else record.password,
        updated_at=record.updated_at,
        masked=masked,
    )


def search(vault, query, verbose=False):
    """
    Search records by service name

    Args:
        vault: Vault to search
        query: Substring to look for in service names
        verbose: Reveal passwords even when several records match

    Returns:
        NoMatch, SingleMatch (real password) or MultipleMatches (masked
        passwords unless verbose)
    """
    matches = matching_records(vault, query)

    if not matches:
        return NoMatch(query)
    if len(matches) == 1:
        return SingleMatch(query, _view(matches[0]))
    return MultipleMatches(query, tuple(_view(record, masked=not verbose) for record in matches))


def mask_matches(result):
    """
    Mask the passwords of a MultipleMatches result

    Returns:
        A MultipleMatches with masked views; any other result is returned as is
    """
    if not isinstance(result, MultipleMatches):
        return result
    return MultipleMatches(
        result.query,
        tuple(replace(view, password=MASKED_PASSWORD, masked=True) for view in result.views),
    )


def services(vault):
    """
    List all services in the vault

    Returns:
        Sorted list of distinct service names
    """
    return sorted({record.service for record in vault.records}, key=str.lower)
