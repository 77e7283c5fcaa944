"""Reading and writing the CSV/JSON files used by the CLI."""

from __future__ import annotations

import csv
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

from ..domain import ReferralEvent


def read_addresses(path: Path) -> list[str]:
    """Addresses from a CSV file, one or more per line; blank cells are skipped."""
    with path.open(newline="", encoding="utf-8") as f:
        return [cell.strip() for row in csv.reader(f) for cell in row if cell.strip()]


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _revenue_cell(revenue: Any) -> str:
    if isinstance(revenue, dict):
        return json.dumps(revenue, sort_keys=True)
    return str(revenue)


def write_revenue(path: Path, results: list[tuple[str, Any]]) -> None:
    """Write ``address,revenue`` rows, or a JSON list when ``path`` ends in .json."""
    if path.suffix.lower() == ".json":
        payload = [{"address": a, "revenue": r} for a, r in results]
        path.write_text(
            json.dumps(payload, indent=2, default=_json_default), encoding="utf-8"
        )
        return
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        for address, revenue in results:
            writer.writerow([address, _revenue_cell(revenue)])


def write_referrals(path: Path, events: list[ReferralEvent]) -> None:
    """Write ``protocol,referrer_id,user_address,timestamp`` rows."""
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        for e in events:
            writer.writerow([e.protocol, e.referrer_id, e.user_address, e.timestamp])


def read_referrals(path: Path, protocol: str) -> list[ReferralEvent]:
    """Read ``user_address,timestamp`` rows (unix seconds)."""
    events: list[ReferralEvent] = []
    with path.open(newline="", encoding="utf-8") as f:
        for row in csv.reader(f):
            if len(row) < 2 or not row[0].strip():
                continue
            events.append(
                ReferralEvent(
                    protocol=protocol,
                    user_address=row[0].strip(),
                    referrer_id="",
                    timestamp=int(row[1]),
                )
            )
    return events


def write_filtered_referrals(path: Path, events: list[ReferralEvent]) -> None:
    """Write ``user_address,timestamp`` rows."""
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        for e in events:
            writer.writerow([e.user_address, e.timestamp])


def write_referrer_counts(path: Path, counts: dict[str, int]) -> None:
    """Write ``referrer,referral_count`` rows."""
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        for referrer, count in counts.items():
            writer.writerow([referrer, count])
