"""Row-level cleaning of ticket export CSVs.

Everything here is pure: no database access, no logging of row contents.
Turning a raw CSV row into typed column values never raises; validation of
the cleaned values happens in ``ticket_upload``.
"""

import csv
import io
import re
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

# Export format, e.g. "08/18/2025, 07:06:29 PM"
REMEDY_DATE_FORMAT = "%m/%d/%Y, %I:%M:%S %p"
FALLBACK_DATE_FORMATS = (
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y, %H:%M:%S",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y",
)

DATE_FIELDS = (
    "reported_date1",
    "responded_date",
    "last_resolved_date",
    "closed_date",
    "reopened_date",
    "service_desk_1st_assigned_date",
    "submit_date",
    "report_date",
)
INTEGER_FIELDS = ("group_transfers", "total_transfers", "reopen_count")
BOOLEAN_FIELDS = ("vip", "reported_to_vendor")
DURATION_FIELDS = {"mttr": "mttr_seconds", "mtti": "mtti_seconds"}

TEXT_FIELDS = (
    "incident_id",
    "priority",
    "region",
    "assigned_support_organization",
    "assigned_group",
    "vertical",
    "sub_vertical",
    "owner_support_organization",
    "owner_group",
    "owner",
    "reported_source",
    "user_name",
    "site_group",
    "operational_category_tier_1",
    "operational_category_tier_2",
    "operational_category_tier_3",
    "product_name",
    "product_categorization_tier_1",
    "product_categorization_tier_2",
    "product_categorization_tier_3",
    "incident_type",
    "summary",
    "assignee",
    "status",
    "status_reason_hidden",
    "pending_reason",
    "department",
    "company",
    "vendor_ticket_number",
    "resolution",
    "resolver_group",
    "service_desk_1st_assigned_group",
    "submitter",
    "owner_login_id",
    "impact",
    "vil_function",
    "it_partner",
    "mttr",
    "mtti",
)

KNOWN_FIELDS = frozenset(TEXT_FIELDS + DATE_FIELDS + INTEGER_FIELDS + BOOLEAN_FIELDS)

# Alternative spellings seen in exports, after normalisation
HEADER_ALIASES = {
    "incident_number": "incident_id",
    "incident": "incident_id",
    "reported_date": "reported_date1",
}

_TRUE_VALUES = {"yes", "y", "true", "t", "1"}
_FALSE_VALUES = {"no", "n", "false", "f", "0"}
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_header(name: str) -> str:
    """``"Incident ID"`` / ``"Incident_ID"`` -> ``"incident_id"``."""
    key = _NON_ALNUM.sub("_", name.strip().lstrip("\ufeff").lower()).strip("_")
    return HEADER_ALIASES.get(key, key)


def clean_field(value: Any) -> str | None:
    """Trim a cell already unquoted by the CSV reader.

    Empty and whitespace-only cells become None. Quote characters are kept.
    """
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_remedy_date(value: str | None, tz: str | ZoneInfo = "UTC") -> datetime | None:
    """Parse an export timestamp as local time in ``tz``.

    ISO-8601 strings are accepted too. Anything unparsable returns None.
    """
    text = clean_field(value)
    if text is None:
        return None
    zone = tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)

    for fmt in (REMEDY_DATE_FORMAT, *FALLBACK_DATE_FORMATS):
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=zone)
        except ValueError:
            continue

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zone)
    return parsed


def safe_int(value: str | None) -> int | None:
    """Coerce ``"3"``, ``" 3 "``, ``"3.0"`` or ``"1,204"`` to int; otherwise None."""
    text = clean_field(value)
    if text is None:
        return None
    text = text.replace(",", "")
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    if not number.is_integer():
        return None
    return int(number)


def parse_bool(value: str | None) -> bool | None:
    text = clean_field(value)
    if text is None:
        return None
    lowered = text.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return None


def time_string_to_seconds(value: str | None) -> int | None:
    """Convert ``HH:MM:SS``, ``MM:SS`` or plain seconds to a number of seconds.

    Hours are unbounded since resolution times can exceed a day; minutes and
    seconds must be below 60.
    """
    text = clean_field(value)
    if text is None:
        return None

    parts = text.split(":")
    if len(parts) > 3:
        return None
    try:
        numbers = [int(p) for p in parts]
    except ValueError:
        return None
    if any(n < 0 for n in numbers):
        return None

    if len(numbers) == 1:
        return numbers[0]
    if any(n > 59 for n in numbers[1:]):
        return None
    if len(numbers) == 2:
        minutes, seconds = numbers
        return minutes * 60 + seconds
    hours, minutes, seconds = numbers
    return hours * 3600 + minutes * 60 + seconds


def read_csv(content: str) -> tuple[list[str], list[dict[str, str | None]]]:
    """Split a CSV document into normalised headers and row dicts.

    Quoted fields may span lines. Fully blank lines are skipped. Rows shorter
    than the header are padded with None.
    """
    if content.startswith("\ufeff"):
        content = content[1:]
    reader = csv.reader(io.StringIO(content, newline=""))

    headers: list[str] = []
    for row in reader:
        if any(cell.strip() for cell in row):
            headers = [normalize_header(h) for h in row]
            break

    rows = []
    for row in reader:
        if not any(cell.strip() for cell in row):
            continue
        rows.append(
            {
                header: row[i] if i < len(row) else None
                for i, header in enumerate(headers)
                if header
            }
        )
    return headers, rows


def clean_row(raw: dict[str, Any], tz: str | ZoneInfo = "UTC") -> dict[str, Any]:
    """Turn a raw row into typed ticket column values.

    Unknown columns are dropped. Each known column is present in the result,
    set to None when missing or unparsable.
    """
    cleaned: dict[str, Any] = {}
    for name in TEXT_FIELDS:
        cleaned[name] = clean_field(raw.get(name))
    for name in DATE_FIELDS:
        cleaned[name] = parse_remedy_date(raw.get(name), tz)
    for name in INTEGER_FIELDS:
        cleaned[name] = safe_int(raw.get(name))
    for name in BOOLEAN_FIELDS:
        cleaned[name] = parse_bool(raw.get(name))
    for source, target in DURATION_FIELDS.items():
        cleaned[target] = time_string_to_seconds(cleaned[source])
    return cleaned
