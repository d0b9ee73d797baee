"""Delivery log ingestion: validate, normalize and upsert source rows.

Source rows arrive keyed by spreadsheet header. Headers are mapped to
canonical fields once per source; every row is then validated in order
(rider id, date, count) and either becomes a DeliveryLogRecord or is
skipped with a logged reason. Invalid rows never abort the run.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bossraid.db.models import DeliveryLog
from bossraid.db.upsert import upsert
from bossraid.exceptions import (
    InvalidCount,
    InvalidDate,
    InvalidRiderId,
    SourceFetchError,
    StoreWriteError,
    ValidationError,
)
from bossraid.raids.schemas import DeliveryLogRecord

logger = logging.getLogger(__name__)

RIDER_ID_PATTERN = re.compile(r"BC\d{6}")
_ISO_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")
_COUNT_PATTERN = re.compile(r"([+-]?\d+)(?:\.0+)?")
_COMPACT_DATE_PATTERN = re.compile(r"\d{8}")

# Tried in order after ISO parsing fails.
DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y.%m.%d",
    "%Y. %m. %d",
    "%m/%d/%Y",
)

TRUE_VALUES = frozenset({"true", "yes", "1", "o"})

# Source header -> canonical field.
COLUMN_MAP: dict[str, str] = {
    "라이더_ID": "rider_id",
    "날짜": "delivery_date",
    "배달건수": "delivery_count",
    "우천여부": "is_rainy",
    "할증여부": "has_surge",
    "배달구역": "district",
    "rider_id": "rider_id",
    "delivery_date": "delivery_date",
    "delivery_count": "delivery_count",
    "is_rainy": "is_rainy",
    "has_surge": "has_surge",
    "district": "district",
}

REQUIRED_FIELDS = ("rider_id", "delivery_date", "delivery_count")

# Sheet data starts below the header row.
FIRST_DATA_ROW = 2


@dataclass
class IngestStats:
    """Counters for one ingestion pass."""

    read: int = 0
    blank: int = 0
    invalid: int = 0
    synced: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def map_columns(header: Iterable[str | None]) -> dict[str, str]:
    """Map source headers to canonical field names.

    Unknown headers are ignored. Raises SourceFetchError when a
    required field has no column.
    """
    mapping: dict[str, str] = {}
    for name in header:
        if name is None:
            continue
        field = COLUMN_MAP.get(name.strip())
        if field is not None and field not in mapping.values():
            mapping[name] = field

    missing = [f for f in REQUIRED_FIELDS if f not in mapping.values()]
    if missing:
        raise SourceFetchError(f"Delivery log source is missing columns: {', '.join(missing)}")
    return mapping


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def parse_rider_id(value: Any, row_number: int | None = None) -> str:
    """Rider ids are 'BC' followed by exactly six digits."""
    if not isinstance(value, str):
        raise InvalidRiderId(value, row_number)
    rider_id = value.strip()
    if not RIDER_ID_PATTERN.fullmatch(rider_id):
        raise InvalidRiderId(value, row_number)
    return rider_id


def parse_delivery_date(value: Any, row_number: int | None = None) -> date:
    """Parse a date, truncating datetimes to their date component."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidDate(value, row_number)

    text = value.strip()
    if _ISO_DATE_PATTERN.fullmatch(text):
        try:
            return date.fromisoformat(text)
        except ValueError:
            raise InvalidDate(value, row_number) from None

    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text.rstrip("."), fmt).date()
        except ValueError:
            continue

    # strptime accepts unpadded fields, so the compact form needs all 8 digits.
    if _COMPACT_DATE_PATTERN.fullmatch(text):
        try:
            return datetime.strptime(text, "%Y%m%d").date()
        except ValueError:
            raise InvalidDate(value, row_number) from None
    raise InvalidDate(value, row_number)


def parse_delivery_count(value: Any, row_number: int | None = None) -> int:
    """Parse a non-negative integer delivery count."""
    if isinstance(value, bool):
        raise InvalidCount(value, row_number)
    if isinstance(value, int):
        count = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise InvalidCount(value, row_number)
        count = int(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        match = _COUNT_PATTERN.fullmatch(text)
        if match is None:
            raise InvalidCount(value, row_number)
        count = int(match.group(1))
    else:
        raise InvalidCount(value, row_number)

    if count < 0:
        raise InvalidCount(value, row_number)
    return count


def parse_flag(value: Any) -> bool:
    """Lenient boolean: true/yes/1/o (any case) are true, everything else false."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUE_VALUES


def parse_row(row: Mapping[str, Any], row_number: int | None = None) -> DeliveryLogRecord | None:
    """Validate one canonical-keyed row. Returns None for a blank row.

    Raises a ValidationError subclass for the first failing rule.
    """
    if is_blank(row.get("rider_id")) and is_blank(row.get("delivery_date")):
        return None

    rider_id = parse_rider_id(row.get("rider_id"), row_number)
    delivery_date = parse_delivery_date(row.get("delivery_date"), row_number)
    delivery_count = parse_delivery_count(row.get("delivery_count"), row_number)
    district = row.get("district")

    return DeliveryLogRecord(
        rider_id=rider_id,
        delivery_date=delivery_date,
        delivery_count=delivery_count,
        is_rainy=parse_flag(row.get("is_rainy")),
        has_surge=parse_flag(row.get("has_surge")),
        district=str(district).strip() if district is not None else "",
    )


def iter_delivery_logs(
    rows: Iterable[Mapping[str, Any]],
    stats: IngestStats | None = None,
) -> Iterator[DeliveryLogRecord]:
    """Lazily yield validated records from header-keyed source rows."""
    if stats is None:
        stats = IngestStats()
    columns: dict[str, str] | None = None

    for row_number, raw in enumerate(rows, start=FIRST_DATA_ROW):
        if columns is None:
            columns = map_columns(raw.keys())
        row = {field: raw.get(header) for header, field in columns.items()}
        stats.read += 1

        try:
            record = parse_row(row, row_number)
        except ValidationError as exc:
            stats.invalid += 1
            logger.warning(
                "Skipping delivery log row %d (rider=%s, date=%s): %s",
                row_number, row.get("rider_id"), row.get("delivery_date"), exc,
            )
            continue

        if record is None:
            stats.blank += 1
            continue
        yield record


async def sync_delivery_logs(
    db: AsyncSession,
    records: Iterable[DeliveryLogRecord],
    stats: IngestStats | None = None,
) -> IngestStats:
    """Upsert records keyed by (rider_id, delivery_date).

    A corrected source row fully replaces the stored one. Each write runs
    in its own savepoint so a failed row is counted and skipped.
    """
    if stats is None:
        stats = IngestStats()
    now = datetime.now(timezone.utc)

    for record in records:
        values = record.model_dump()
        values["synced_at"] = now
        try:
            async with db.begin_nested():
                await db.execute(
                    upsert(db, DeliveryLog, values, ["rider_id", "delivery_date"])
                )
        except SQLAlchemyError as exc:
            stats.failed += 1
            logger.error(
                "Delivery log sync failed (%s, %s): %s",
                record.rider_id, record.delivery_date.isoformat(), exc,
            )
        else:
            stats.synced += 1

    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise StoreWriteError(f"Failed to commit delivery logs: {exc}") from exc

    logger.info(
        "Delivery log sync complete: %d synced, %d failed, %d invalid",
        stats.synced, stats.failed, stats.invalid,
    )
    return stats
