#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""CSV import for the Secure Password Vault"""

import csv
import io
from dataclasses import dataclass
from password_vault.exceptions import MalformedCsv, MissingHeader, MissingRequiredColumn
from password_vault.models import CredentialRecord, UpsertResult, utc_now
from password_vault.vault import upsert

REQUIRED_COLUMNS = ("username", "password", "service")


@dataclass(frozen=True)
class CandidateRecord:
    service: str
    username: str
    password: str


@dataclass
class ImportReport:
    imported: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0

    @property
    def total(self):
        return self.imported + self.updated + self.unchanged + self.skipped


def _header_positions(header):
    """
    Map required column names to their index in the header row

    Raises:
        MissingHeader: If the row names none of the required columns
        MissingRequiredColumn: If it names only some of them
    """
    names = [name.strip().lower() for name in header]
    positions = {column: names.index(column) for column in REQUIRED_COLUMNS if column in names}

    if not positions:
        raise MissingHeader()
    missing = set(REQUIRED_COLUMNS) - set(positions)
    if missing:
        raise MissingRequiredColumn(missing)
    return positions


def _next_row(reader):
    """
    Read the next row, reporting rows the csv module rejects

    Returns:
        Tuple of (row, ok); row is None at the end of the data

    Raises:
        MalformedCsv: If the reader cannot advance past the broken row
    """
    line = reader.line_num
    try:
        return next(reader), True
    except StopIteration:
        return None, True
    except csv.Error as e:
        if reader.line_num == line:
            raise MalformedCsv(line + 1, e) from e
        return None, False


def parse(data):
    """
    Parse a CSV export into candidate records

    A header row naming username, password and service (any order, any case)
    is mandatory. Rows without a service or password, and rows the csv
    module cannot read (an oversized field, for instance), are skipped.

    Args:
        data: Raw CSV bytes (UTF-8, optionally with a BOM)

    Returns:
        Tuple of (list of CandidateRecord, number of skipped rows)

    Raises:
        MissingHeader: If there is no header row
        MissingRequiredColumn: If the header lacks a required column
        MalformedCsv: If the header row or a data row cannot be read past
    """
    text = data.decode("utf-8-sig") if isinstance(data, (bytes, bytearray)) else data
    reader = csv.reader(io.StringIO(text))

    header, ok = _next_row(reader)
    if not ok:
        raise MalformedCsv(reader.line_num, "header row")
    if not header or not any(cell.strip() for cell in header):
        raise MissingHeader()
    positions = _header_positions(header)

    candidates = []
    skipped = 0
    while True:
        row, ok = _next_row(reader)
        if not ok:
            skipped += 1
            continue
        if row is None:
            break
        if not any(cell.strip() for cell in row):
            continue  # blank line
        values = {
            column: row[index].strip() if index < len(row) else ""
            for column, index in positions.items()
        }
        if not values["service"] or not values["password"]:
            skipped += 1
            continue
        candidates.append(CandidateRecord(values["service"], values["username"], values["password"]))

    return candidates, skipped


def merge(vault, candidates, now=None, logger=None):
    """
    Merge candidates into the vault through upsert

    Later values win for an existing (service, username); identical
    passwords leave the record untouched, so importing a file twice yields
    the same vault as importing it once.

    Args:
        vault: Vault to modify
        candidates: Iterable of CandidateRecord
        now: Timestamp to stamp inserted/updated records with
        logger: Optional logger instance

    Returns:
        ImportReport (skipped is left at zero; parse() counts those)
    """
    now = now or utc_now()
    report = ImportReport()

    for candidate in candidates:
        result = upsert(vault, CredentialRecord(
            candidate.service, candidate.username, candidate.password, updated_at=now
        ))
        if result is UpsertResult.INSERTED:
            report.imported += 1
        elif result is UpsertResult.UPDATED:
            report.updated += 1
        else:
            report.unchanged += 1

    if logger:
        logger.info(
            f"Merged CSV: {report.imported} imported, {report.updated} updated, "
            f"{report.unchanged} unchanged"
        )
    return report


def import_csv(vault, data, now=None, logger=None):
    """
    Parse a CSV payload and merge it into the vault

    Nothing is merged when the header is unusable.

    Returns:
        ImportReport with imported, updated, unchanged and skipped counts
    """
    candidates, skipped = parse(data)
    report = merge(vault, candidates, now=now, logger=logger)
    report.skipped = skipped
    return report
