"""Record store with a full-replace JSON backend.

All mutations go through ``TechnologyStore`` methods, and every mutation
writes the complete record list back through the backend.  Filtering,
sorting, stats and export helpers work on plain record lists.
"""

import datetime as dt
import json
from pathlib import Path
from typing import Any, Iterable

from pydantic import ValidationError

from .models import TechnologyRecord
from .parsers import PRIORITY_ORDER, norm, parse_lifecycle_date


class JsonRecordBackend:
    """Persist the record list as one JSON document.

    The file holds ``{"generated_at", "count", "items"}``; a bare list of
    records is accepted on load as well.

    Attributes:
        path: Path to the JSON file.
    """

    def __init__(self, path: Path):
        self.path = path

    def load_all(self) -> list[TechnologyRecord]:
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            print(f"Warning: Could not load records ({e}), starting empty")
            return []
        return records_from_payload(data)

    def save_all(self, records: list[TechnologyRecord]) -> None:
        """Write all records atomically (write-then-rename)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(records_payload(records), f, indent=2, ensure_ascii=False)
        tmp.replace(self.path)


class MemoryBackend:
    """Backend that keeps the last saved list in memory."""

    def __init__(self, records: list[TechnologyRecord] | None = None):
        self.saved: list[dict[str, Any]] = [r.to_dict() for r in records or []]
        self.save_count = 0

    def load_all(self) -> list[TechnologyRecord]:
        return [TechnologyRecord.model_validate(d) for d in self.saved]

    def save_all(self, records: list[TechnologyRecord]) -> None:
        self.saved = [r.to_dict() for r in records]
        self.save_count += 1


def records_payload(records: Iterable[TechnologyRecord]) -> dict[str, Any]:
    items = [r.to_dict() for r in records]
    return {
        "generated_at": dt.datetime.now(dt.timezone.utc).isoformat(),
        "count": len(items),
        "items": items,
    }


def records_from_payload(data: Any) -> list[TechnologyRecord]:
    """Validate records from a payload dict or a bare list.

    Invalid items are skipped with a warning.
    """
    items = data.get("items") if isinstance(data, dict) else data
    if not isinstance(items, list):
        return []
    out: list[TechnologyRecord] = []
    for item in items:
        try:
            out.append(TechnologyRecord.model_validate(item))
        except ValidationError as e:
            print(f"Warning: Skipping invalid record ({e.error_count()} errors)")
    return out


class TechnologyStore:
    """The tracked technologies, keyed by record id.

    Args:
        backend: Object with ``load_all()`` and ``save_all(records)``.
    """

    def __init__(self, backend: Any):
        self.backend = backend
        self._records: dict[str, TechnologyRecord] = {r.id: r for r in backend.load_all()}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: str) -> bool:
        return record_id in self._records

    def all(self) -> list[TechnologyRecord]:
        """Records in insertion order."""
        return list(self._records.values())

    def get(self, record_id: str) -> TechnologyRecord | None:
        return self._records.get(record_id)

    def create(self, record: TechnologyRecord) -> TechnologyRecord:
        if record.id in self._records:
            raise ValueError(f"Record {record.id} already exists")
        self._records[record.id] = record
        self._persist()
        return record

    def update(self, record: TechnologyRecord) -> bool:
        """Replace a record as a whole.

        Returns:
            False if the record was deleted in the meantime; nothing is
            written in that case.
        """
        if record.id not in self._records:
            return False
        self._records[record.id] = record
        self._persist()
        return True

    def delete(self, record_id: str) -> bool:
        if self._records.pop(record_id, None) is None:
            return False
        self._persist()
        return True

    def replace_all(self, records: Iterable[TechnologyRecord]) -> None:
        self._records = {r.id: r for r in records}
        self._persist()

    def clear(self) -> None:
        self._records = {}
        self._persist()

    def _persist(self) -> None:
        self.backend.save_all(self.all())


# ── Views ────────────────────────────────────────────────────────────────────


def filter_records(
    records: Iterable[TechnologyRecord],
    query: str | None = None,
    priority: str | None = None,
) -> list[TechnologyRecord]:
    """Substring search over names, versions and recommendations."""
    q = norm(query or "")
    out: list[TechnologyRecord] = []
    for r in records:
        if priority and r.ai_priority != priority:
            continue
        if q:
            haystack = norm(
                " ".join([r.technology, r.current_version, r.latest_version, r.environment or "", *r.recommendations])
            )
            if q not in haystack:
                continue
        out.append(r)
    return out


def _eol_sort_key(r: TechnologyRecord) -> tuple[int, dt.date]:
    d = parse_lifecycle_date(r.eol_date)
    return (0, d) if d else (1, dt.date.max)


def sort_records(records: Iterable[TechnologyRecord], by: str = "technology") -> list[TechnologyRecord]:
    """Sort by ``technology``, ``priority``, ``eol`` or ``lastAnalyzed``.

    Priority and last-analyzed sort most urgent / most recent first;
    records without a parseable EOL date go last.
    """
    items = list(records)
    if by == "priority":
        return sorted(items, key=lambda r: (-PRIORITY_ORDER.get(r.ai_priority, 1), r.technology.lower()))
    if by == "eol":
        return sorted(items, key=_eol_sort_key)
    if by == "lastAnalyzed":
        return sorted(items, key=lambda r: r.last_analyzed or "", reverse=True)
    if by == "technology":
        return sorted(items, key=lambda r: r.technology.lower())
    raise ValueError(f"Unknown sort key: {by}")


def calculate_stats(records: Iterable[TechnologyRecord]) -> dict[str, int]:
    """Counts shown at the top of the report and ``list`` output."""
    items = list(records)
    return {
        "total": len(items),
        "critical": sum(1 for r in items if r.ai_priority == "critical"),
        "recommended": sum(1 for r in items if r.ai_priority in ("high", "medium")),
        "up_to_date": sum(1 for r in items if r.version_gap == "up-to-date"),
        "ai_insights": sum(1 for r in items if r.ai_summary),
        "vulnerable": sum(1 for r in items if (r.vulnerability_count or 0) > 0),
    }


def export_json(records: Iterable[TechnologyRecord], path: Path) -> int:
    """Write records to ``path``; returns the number written."""
    payload = records_payload(records)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)
    tmp.replace(path)
    return payload["count"]


def import_json(path: Path) -> list[TechnologyRecord]:
    """Read records previously written by ``export_json``."""
    with path.open("r", encoding="utf-8") as f:
        return records_from_payload(json.load(f))
