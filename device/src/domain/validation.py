"""Reading run logs / reference datasets and comparing them record by record."""

import csv
from pathlib import Path
from typing import List, Sequence

from domain.models import LogRecord


def read_records(path: Path) -> List[LogRecord]:
    """
    Load `second,pressure,current` records in file order.

    Blank lines are skipped. A line with the wrong field count or a
    non-integer field raises ValueError naming the line number.
    """
    records: List[LogRecord] = []
    with open(path, "r", encoding="utf-8", newline="") as fh:
        for lineno, row in enumerate(csv.reader(fh), start=1):
            if not row or all(not cell.strip() for cell in row):
                continue
            if len(row) != 3:
                raise ValueError(f"line {lineno}: expected 3 fields, got {len(row)}")
            try:
                second, pressure, current = (int(cell.strip(), 10) for cell in row)
            except ValueError:
                raise ValueError(f"line {lineno}: non-integer field in {','.join(row)!r}")
            records.append(LogRecord(second=second, pressure=pressure, current=current))
    return records


def records_mismatch(produced: LogRecord, expected: LogRecord, strict: bool = False) -> bool:
    if strict:
        return produced != expected
    # Legacy rule: only a pair where every field differs counts as a mismatch
    return (
        produced.current != expected.current
        and produced.pressure != expected.pressure
        and produced.second != expected.second
    )


def records_match(
    produced: Sequence[LogRecord],
    reference: Sequence[LogRecord],
    strict: bool = False,
) -> bool:
    """Positional comparison; sequences of different length never match."""
    if len(produced) != len(reference):
        return False
    for got, want in zip(produced, reference):
        if records_mismatch(got, want, strict=strict):
            return False
    return True