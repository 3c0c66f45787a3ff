from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Collection, Dict, List, Mapping, Optional, Sequence
from dateutil import parser as dateutil_parser
from loguru import logger

from tools.mapping import map_header

TIMESTAMP_COLUMN = "Timestamp"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# set by the builder only; a column slugged to one of these is dropped
SYSTEM_FIELDS = ("id", "timestamp", "date")

class LeadBuildError(ValueError):
    """Raised when a row cannot be turned into a lead."""
    kind = "BuildFailure"

class DateParseFailure(LeadBuildError):
    """The Timestamp column holds a value that is not a date."""
    kind = "DateParseFailure"

@dataclass(frozen=True)
class BuildContext:
    """Per-lead defaults: the normalization instant, the lead id and initial values."""
    now: datetime
    lead_id: str
    stage: str = "new"
    source: str = "Form"

@dataclass
class LeadResult:
    """Outcome of building one row: either a lead or an error."""
    row_index: int
    lead: Optional[Dict[str, Any]] = None
    error_kind: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.lead is not None

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def epoch_millis(now: datetime) -> int:
    return (_as_utc(now) - EPOCH) // timedelta(milliseconds=1)

def event_lead_id(now: datetime) -> str:
    return f"L{epoch_millis(now)}"

def bulk_lead_id(now: datetime, row_index: int) -> str:
    # the row suffix keeps ids distinct when the clock has not moved between rows
    return f"L{epoch_millis(now)}-{row_index}"

def iso_timestamp(now: datetime) -> str:
    """ISO-8601 UTC instant with milliseconds and a Z suffix."""
    return _as_utc(now).isoformat(timespec="milliseconds").replace("+00:00", "Z")

def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

def parse_lead_date(value: Any) -> str:
    """Return the ISO calendar date of a Timestamp cell value."""
    if isinstance(value, datetime):
        return _as_utc(value).date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        parsed = dateutil_parser.parse(str(value).strip())
    except (ValueError, OverflowError) as e:
        raise DateParseFailure(f"Invalid date in {TIMESTAMP_COLUMN} column: {value!r}") from e
    return _as_utc(parsed).date().isoformat()

def build_lead(
    headers: Sequence[Any],
    values: Sequence[Any],
    context: BuildContext,
    field_mapping: Mapping[str, str],
    skip_headers: Collection[str] = (),
) -> Dict[str, Any]:
    """
    Normalize one row into a lead record.

    Empty cells are skipped. Mapped columns are applied in column order on
    top of the defaults, so two headers resolving to the same field end up
    with the value of the rightmost one. `id`, `timestamp` and `date` always
    keep the builder's values. Columns named in `skip_headers`
    (the sync status column) are left out. The date comes from the Timestamp
    column when it has a value, otherwise from the normalization instant.
    """
    lead: Dict[str, Any] = {
        "id": context.lead_id,
        "timestamp": iso_timestamp(context.now),
        "date": _as_utc(context.now).date().isoformat(),
        "stage": context.stage,
        "source": context.source,
    }

    for index, header in enumerate(headers):
        if header in skip_headers:
            continue
        value = values[index] if index < len(values) else None
        if not value:
            continue
        field = map_header(header, field_mapping)
        if field in SYSTEM_FIELDS:
            continue
        lead[field] = value

    timestamp_value = _cell(headers, values, TIMESTAMP_COLUMN)
    if timestamp_value:
        lead["date"] = parse_lead_date(timestamp_value)

    return lead

def try_build_lead(
    row_index: int,
    headers: Sequence[Any],
    values: Sequence[Any],
    context: BuildContext,
    field_mapping: Mapping[str, str],
    skip_headers: Collection[str] = (),
) -> LeadResult:
    """Build a lead, capturing any failure in the result instead of raising."""
    try:
        lead = build_lead(headers, values, context, field_mapping, skip_headers)
        return LeadResult(row_index=row_index, lead=lead)
    except LeadBuildError as e:
        logger.warning(f"Row {row_index} skipped ({e.kind}): {e}")
        return LeadResult(row_index=row_index, error_kind=e.kind, error=str(e))
    except Exception as e:
        logger.error(f"Row {row_index} failed to build: {e}")
        return LeadResult(row_index=row_index, error_kind=LeadBuildError.kind, error=str(e))

def _cell(headers: Sequence[Any], values: Sequence[Any], name: str) -> Any:
    # first exact match, like a header scan
    for index, header in enumerate(headers):
        if header == name:
            return values[index] if index < len(values) else None
    return None

def headers_and_rows(snapshot: List[List[Any]]):
    """Split a full-sheet snapshot into its header row and data rows."""
    if not snapshot:
        return [], []
    return list(snapshot[0]), [list(row) for row in snapshot[1:]]
