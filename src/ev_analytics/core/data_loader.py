from __future__ import annotations

import csv
import io
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import IO, List, Optional, Sequence, Tuple, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ev_analytics.config import (
    CSV_DELIMITER,
    HTTP_MAX_RETRIES,
    HTTP_TIMEOUT_SECONDS,
)
from ev_analytics.core.records import COLUMN_NAMES, INT_COLUMNS, VehicleRecord

logger = logging.getLogger(__name__)

Source = Union[str, Path, IO[str], IO[bytes]]

_LEADING_INT = re.compile(r"^[+-]?\d+")

# Largest value the int64 frame columns can hold
INT64_MAX = 2 ** 63 - 1


class DataLoaderError(Exception):
    """Base class for loader failures."""


class SourceUnreadableError(DataLoaderError):
    """Raised when the source text cannot be obtained at all (file, URL or handle)."""


class RowMalformedError(DataLoaderError):
    """Raised for a single row that cannot become a VehicleRecord. Never escapes parse_records."""


@dataclass
class ParseResult:
    records: Tuple[VehicleRecord, ...]
    skipped_rows: int = 0

    @property
    def count(self) -> int:
        return len(self.records)


# ---------------------------------------------------------------------------
# HTTP session
# ---------------------------------------------------------------------------

def _build_retry_session(max_retries: int = HTTP_MAX_RETRIES) -> requests.Session:
    """
    Build a requests Session for CSV downloads.

    Retries are off unless EV_HTTP_MAX_RETRIES is set; a failed download is
    reported once and the caller decides whether to reload.
    """
    session = requests.Session()

    retry = Retry(
        total=max_retries,
        connect=max_retries,
        read=max_retries,
        status=max_retries,
        backoff_factor=0.6,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset({"GET"}),
        raise_on_status=False,
    )

    adapter = HTTPAdapter(max_retries=retry, pool_connections=4, pool_maxsize=4)
    session.mount("https://", adapter)
    session.mount("http://", adapter)

    return session


_SESSION: Optional[requests.Session] = None


def _get_session() -> requests.Session:
    global _SESSION
    if _SESSION is None:
        _SESSION = _build_retry_session()
    return _SESSION


# ---------------------------------------------------------------------------
# Reading the source text
# ---------------------------------------------------------------------------

def describe_source(source: Source) -> str:
    if hasattr(source, "read"):
        return str(getattr(source, "name", "<handle>"))
    return str(source)


def _is_url(source: str) -> bool:
    lowered = source.lower()
    return lowered.startswith("http://") or lowered.startswith("https://")


def _decode(payload: Union[str, bytes], origin: str) -> str:
    if isinstance(payload, str):
        return payload.lstrip("\ufeff")
    try:
        return payload.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise SourceUnreadableError(f"{origin} is not valid UTF-8: {exc}") from exc


def _fetch_url(url: str, timeout_seconds: Optional[float]) -> str:
    try:
        resp = _get_session().get(url, timeout=timeout_seconds)
    except requests.RequestException as exc:
        raise SourceUnreadableError(f"HTTP error while fetching {url}: {exc}") from exc

    if resp.status_code >= 400:
        raise SourceUnreadableError(f"Fetching {url} failed with status {resp.status_code}")

    return _decode(resp.content, url)


def read_source_text(source: Source, timeout_seconds: Optional[float] = HTTP_TIMEOUT_SECONDS) -> str:
    """
    Return the full text behind a path, an http(s) URL or an open handle.

    Any failure to obtain the text raises SourceUnreadableError. A UTF-8 BOM
    at the start of the text is dropped.
    """
    if hasattr(source, "read"):
        origin = getattr(source, "name", "<handle>")
        try:
            payload = source.read()  # type: ignore[union-attr]
        except (OSError, ValueError) as exc:
            raise SourceUnreadableError(f"Could not read from {origin}: {exc}") from exc
        return _decode(payload, str(origin))

    if isinstance(source, str) and _is_url(source.strip()):
        return _fetch_url(source.strip(), timeout_seconds)

    path = Path(source)
    try:
        payload = path.read_bytes()
    except OSError as exc:
        raise SourceUnreadableError(f"Could not read data file {path}: {exc}") from exc
    return _decode(payload, str(path))


# ---------------------------------------------------------------------------
# Row parsing
# ---------------------------------------------------------------------------

def parse_int(raw: str) -> int:
    """
    Best-effort leading-integer parse: "2021" -> 2021, "12.7" -> 12, "abc" -> 0.
    """
    match = _LEADING_INT.match(raw.strip())
    if match is None:
        return 0
    return int(match.group(0))


def parse_row(row: Sequence[str], line_no: int = 0) -> VehicleRecord:
    """
    Map one positional row onto a VehicleRecord.

    Missing trailing columns take the field default ("" or 0) and extra
    columns are ignored. Numbers that are negative or too large for int64 are
    treated like any other unparseable number and become 0. Raises
    RowMalformedError for rows with no content.
    """
    cells: List[str] = [str(v) if v is not None else "" for v in row[: len(COLUMN_NAMES)]]
    if not any(c.strip() for c in cells):
        raise RowMalformedError(f"Row {line_no} has no values")

    cells.extend([""] * (len(COLUMN_NAMES) - len(cells)))

    values = {}
    for name, raw in zip(COLUMN_NAMES, cells):
        if name in INT_COLUMNS:
            number = parse_int(raw)
            if number < 0 or number > INT64_MAX:
                logger.debug("Row %s: %s out of range (%r), using 0", line_no, name, raw)
                number = 0
            values[name] = number
        else:
            values[name] = raw

    return VehicleRecord(**values)


def parse_records(text: str, delimiter: str = CSV_DELIMITER) -> ParseResult:
    """
    Parse delimited registration text into records.

    Key behavior:
      - The first non-empty row is the header and is discarded.
      - Quoted fields may contain the delimiter or line breaks.
      - Blank lines are ignored (not counted as skipped).
      - Malformed rows are dropped and counted; they never fail the parse.
    """
    reader = csv.reader(io.StringIO(text), delimiter=delimiter)

    records: List[VehicleRecord] = []
    skipped = 0
    header_seen = False

    while True:
        try:
            row = next(reader)
        except StopIteration:
            break
        except csv.Error as exc:
            # e.g. a field over csv.field_size_limit(); the reader resumes on the next line
            skipped += 1
            logger.debug("Skipping unreadable row near line %s: %s", reader.line_num, exc)
            continue

        if not row:
            continue
        if not header_seen:
            header_seen = True
            continue
        try:
            records.append(parse_row(row, line_no=reader.line_num))
        except RowMalformedError as exc:
            skipped += 1
            logger.debug("Skipping row: %s", exc)

    if skipped:
        logger.warning("Skipped %s malformed row(s) while parsing vehicle data.", skipped)

    return ParseResult(records=tuple(records), skipped_rows=skipped)


def load_records(source: Source, delimiter: str = CSV_DELIMITER) -> ParseResult:
    """
    Read and parse a registration export.

    Only SourceUnreadableError can escape; per-row problems are absorbed by
    parse_records.
    """
    t0 = time.perf_counter()
    logger.info("Loading vehicle data from %s", describe_source(source))

    text = read_source_text(source)
    result = parse_records(text, delimiter=delimiter)

    logger.info(
        "Loaded %s vehicle record(s) (%s skipped) in %0.2fs",
        result.count,
        result.skipped_rows,
        time.perf_counter() - t0,
    )
    return result
