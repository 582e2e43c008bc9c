"""CSV adapter between transaction files and the engine.

Input carries the columns ``type``, ``client``, ``tx`` and ``amount`` in any
order, with optional whitespace around every field; output rows look like
``client,available,held,total,locked``.
Anything structurally wrong with the input aborts the run with a
RecordFormatError carrying the offending line number.
"""

import csv
from decimal import Decimal
from typing import IO, Iterable, Iterator, List, Optional, Tuple

import structlog
from pydantic import ValidationError

from config import Settings, get_settings
from exceptions import InputSourceError, MissingAmountError, RecordFormatError
from models import AccountSnapshot, TransactionRecord, parse_record

logger = structlog.get_logger()

INPUT_HEADER = ("type", "client", "tx", "amount")
OUTPUT_HEADER = ("client", "available", "held", "total", "locked")


def read_transactions(stream: IO[str], settings: Optional[Settings] = None) -> Iterator[TransactionRecord]:
    """Lazily yield validated transaction records from a CSV text stream."""

    settings = settings or get_settings()
    rows = _read_rows(stream)

    first = next(rows, None)
    if first is None:
        return

    # Columns are matched by name, in whatever order the file lists them
    line, header = first
    header = tuple(name.strip() for name in header)
    if len(set(header)) != len(header) or set(header) != set(INPUT_HEADER):
        raise RecordFormatError(
            f"unexpected header {','.join(header)!r}, expected the columns {','.join(INPUT_HEADER)!r}",
            line=line,
        )

    for line, row in rows:
        if len(row) != len(header):
            raise RecordFormatError(f"expected {len(header)} fields, found {len(row)}", line=line)

        fields = {name: value.strip() for name, value in zip(header, row) if value.strip()}

        try:
            record = parse_record(fields)
        except ValidationError as e:
            if not _is_missing_amount(e):
                raise RecordFormatError(_describe(e), line=line) from e

            if not settings.reject_incomplete_records:
                raise MissingAmountError(f"{fields['type']} record has no amount", line=line) from e

            logger.warning(
                "Incomplete record skipped",
                line=line,
                type=fields["type"],
                client=fields.get("client"),
                tx=fields.get("tx"),
            )
            continue

        yield record


def open_transactions(path: str, settings: Optional[Settings] = None) -> Iterator[TransactionRecord]:
    """Same as read_transactions, reading from the file at ``path``."""

    try:
        stream = open(path, "r", newline="", encoding="utf-8-sig")
    except OSError as e:
        raise InputSourceError(f"cannot open {path}: {e.strerror or e}") from e

    with stream:
        yield from read_transactions(stream, settings)


def write_accounts(accounts: Iterable[AccountSnapshot], stream: IO[str]) -> None:
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(OUTPUT_HEADER)
    for account in accounts:
        writer.writerow([
            account.client,
            format_amount(account.available),
            format_amount(account.held),
            format_amount(account.total),
            str(account.locked).lower(),
        ])


def format_amount(value: Decimal) -> str:
    """Render a decimal in positional notation, keeping its precision."""
    return f"{value:f}"


def _read_rows(stream: IO[str]) -> Iterator[Tuple[int, List[str]]]:
    reader = csv.reader(stream)
    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except csv.Error as e:
            raise RecordFormatError(str(e), line=reader.line_num) from e
        except (OSError, UnicodeDecodeError) as e:
            raise InputSourceError(f"cannot read input: {e}") from e

        # blank line
        if not row or (len(row) == 1 and not row[0].strip()):
            continue

        yield reader.line_num, row


def _is_missing_amount(error: ValidationError) -> bool:
    errors = error.errors()
    return bool(errors) and all(
        err["type"] == "missing" and err["loc"] and err["loc"][-1] == "amount" for err in errors
    )


def _describe(error: ValidationError) -> str:
    messages = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"]) or "record"
        messages.append(f"{location}: {err['msg']}")
    return "; ".join(messages)
