from __future__ import annotations

import csv
import io
from datetime import datetime, timezone
from typing import Iterable, Optional

from ..shared.models import DetectionResult

CSV_HEADERS = ("ID", "Timestamp", "Type", "Severity", "Region", "Status", "Confidence", "Description")


def _iso_utc(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _quoted(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def export_csv(records: Iterable[DetectionResult]) -> str:
    # Description is always quoted; the other columns only when needed.
    out = io.StringIO()
    writer = csv.writer(out, quoting=csv.QUOTE_MINIMAL, lineterminator="")
    lines = [",".join(CSV_HEADERS)]
    for r in records:
        writer.writerow([r.id, _iso_utc(r.ts), r.category, r.severity, r.location.region, r.status, r.confidence])
        lines.append(f"{out.getvalue()},{_quoted(r.narrative)}")
        out.seek(0)
        out.truncate()
    return "\n".join(lines)


def export_filename(prefix: str = "mazingira_reports", now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{prefix}_{_iso_utc(now)}.csv"
