"""CSV adapter for batch capture ingest.

Validates the header row against the capture contract, streams rows and
yields flat records that ``ReconciliationOrchestrator.ingest_batch`` accepts.
Spreadsheet exports from the field teams use Spanish headers (``lider``,
``cc``, ``nombres``...), which the alias table maps onto canonical names.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from typing import IO, Iterator, Sequence

from canvass_app.reconciliation.contracts import get_alias_map, get_record_key_map, normalize_header

REQUIRED_KEYS = ("leader_id", "reported_id")


class CSVAdapterError(Exception):
    """Base exception for CSV adapter failures."""


class CSVHeaderError(CSVAdapterError):
    """Raised when the CSV header row does not meet contract requirements."""

    def __init__(
        self,
        *,
        missing: Sequence[str] | None = None,
        duplicates: Sequence[str] | None = None,
        no_fields: bool = False,
    ) -> None:
        details: list[str] = []
        if missing:
            details.append(f"Missing required columns: {', '.join(sorted(missing))}.")
        if duplicates:
            details.append(
                "Duplicate canonical columns detected: "
                + ", ".join(sorted(duplicates))
                + ". Ensure each canonical field appears only once."
            )
        if no_fields:
            details.append("At least one voter field column is required.")

        message = "CSV header validation failed. " + " ".join(details) if details else "CSV header validation failed."
        super().__init__(message)
        self.missing = tuple(missing or ())
        self.duplicates = tuple(duplicates or ())


class CSVDecodeError(CSVAdapterError):
    """Raised when the file cannot be decoded as UTF-8 CSV."""

    def __init__(self, message: str, *, line: int | None = None) -> None:
        location = f" near line {line}" if line else ""
        super().__init__(f"CSV file could not be read{location}: {message}")
        self.line = line


@dataclass(frozen=True)
class CaptureCSVRow:
    """A parsed CSV row keyed by canonical names."""

    sequence_number: int
    source_line: int
    record: dict[str, object | None]


@dataclass
class CaptureCSVStatistics:
    rows_processed: int = 0
    rows_skipped_blank: int = 0
    ignored_columns: tuple[str, ...] = ()


def _sanitize_header(header: str | None) -> str:
    token = (header or "").strip()
    return token.lstrip("\ufeff")


def _row_is_blank(row: dict[str, object | None]) -> bool:
    return all((value is None or (isinstance(value, str) and value.strip() == "")) for value in row.values())


class CaptureCSVAdapter:
    """CSV reader that enforces the capture ingest contract."""

    def __init__(self, file_obj: IO[str], *, skip_blank_rows: bool = True) -> None:
        self._file_obj = file_obj
        self.skip_blank_rows = skip_blank_rows
        self.statistics = CaptureCSVStatistics()

    def _prepare_reader(self) -> tuple[csv.DictReader, list[str | None]]:
        self._file_obj.seek(0)
        reader = csv.DictReader(self._file_obj)
        if reader.fieldnames is None:
            raise CSVHeaderError(missing=REQUIRED_KEYS)

        key_map = get_record_key_map()
        alias_map = get_alias_map()
        seen: set[str] = set()
        duplicates: list[str] = []
        ignored: list[str] = []
        canonical_headers: list[str | None] = []

        for header in (_sanitize_header(h) for h in reader.fieldnames):
            token = normalize_header(header)
            canonical = key_map.get(token) or alias_map.get(token)
            if canonical is None:
                ignored.append(header)
                canonical_headers.append(None)
                continue
            if canonical in seen:
                duplicates.append(canonical)
            seen.add(canonical)
            canonical_headers.append(canonical)

        missing = [key for key in REQUIRED_KEYS if key not in seen]
        has_fields = any(name in seen for name in set(alias_map.values()))
        if missing or duplicates or not has_fields:
            raise CSVHeaderError(missing=missing, duplicates=duplicates, no_fields=not has_fields)

        self.statistics.ignored_columns = tuple(ignored)
        return reader, canonical_headers

    def iter_rows(self) -> Iterator[CaptureCSVRow]:
        try:
            reader, canonical_headers = self._prepare_reader()
        except (UnicodeDecodeError, csv.Error) as exc:
            raise CSVDecodeError(str(exc), line=1) from exc

        raw_headers = list(reader.fieldnames or [])
        rows = enumerate(reader, start=1)
        while True:
            try:
                sequence_number, raw_row = next(rows)
            except StopIteration:
                return
            except (UnicodeDecodeError, csv.Error) as exc:
                raise CSVDecodeError(str(exc), line=reader.line_num + 1) from exc

            record: dict[str, object | None] = {}
            for raw_header, canonical in zip(raw_headers, canonical_headers):
                if canonical is not None:
                    record[canonical] = raw_row.get(raw_header)

            if self.skip_blank_rows and _row_is_blank(record):
                self.statistics.rows_skipped_blank += 1
                continue

            self.statistics.rows_processed += 1
            yield CaptureCSVRow(sequence_number=sequence_number, source_line=reader.line_num, record=record)

    def iter_records(self) -> Iterator[dict[str, object | None]]:
        for row in self.iter_rows():
            yield row.record
