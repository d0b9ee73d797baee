"""Delivery log source adapter: CSV export of the delivery-log sheet."""

from __future__ import annotations

import csv
import logging
from pathlib import Path

from bossraid.exceptions import SourceFetchError

logger = logging.getLogger(__name__)


def fetch_delivery_rows(path: str | Path) -> list[dict[str, str]]:
    """Read every row of a delivery-log CSV, keyed by header.

    Accepts UTF-8 with or without BOM (spreadsheet exports add one).
    """
    source = Path(path)
    try:
        with source.open(newline="", encoding="utf-8-sig") as fh:
            reader = csv.DictReader(fh)
            rows = list(reader)
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise SourceFetchError(f"Failed to read delivery logs from {source}: {exc}") from exc

    logger.info("Read %d delivery log rows from %s", len(rows), source)
    return rows
