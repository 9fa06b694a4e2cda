"""
JSON snapshots of the entity collections.

Run ``export_backup`` before a destructive job; ``import_backup`` seeds a
local SQLite store from a snapshot (or from the managed backend's own export,
which uses the same layout).
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Dict, Tuple

from .errors import StoreError
from .logger import get_logger
from .scanner import scan_all
from .storage import EntityStore

logger = get_logger()

# snapshot key -> entity name
BACKUP_COLLECTIONS = {
    "athletes": "Athlete",
    "metrics": "Metric",
    "metricRecords": "MetricRecord",
    "teams": "Team",
    "metricCategories": "MetricCategory",
    "classPeriods": "ClassPeriod",
    "organizations": "Organization",
}


def export_backup(store: EntityStore, path: Path, page_size: int = 5000) -> Dict[str, int]:
    """
    Write every collection in BACKUP_COLLECTIONS to ``path`` as one JSON document.

    Returns:
        Summary counts: athletes, metrics, records, teams, organizations
    """
    data = {}
    for key, entity in BACKUP_COLLECTIONS.items():
        data[key] = list(scan_all(store, entity, page_size=page_size))
        logger.info(f"Exported {len(data[key])} {entity} records")

    stats = {
        "total_athletes": len(data["athletes"]),
        "total_metrics": len(data["metrics"]),
        "total_records": len(data["metricRecords"]),
        "total_teams": len(data["teams"]),
        "total_organizations": len(data["organizations"]),
    }
    snapshot = {
        "backup_date": datetime.now().isoformat(),
        "data": data,
        "stats": stats,
    }

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(snapshot, f, indent=2, ensure_ascii=False, default=str)
    return stats


def import_backup(path: Path, store: EntityStore) -> Tuple[int, int, int]:
    """
    Load a snapshot into ``store``.

    Records the store refuses (duplicate ids, missing ids) are skipped and
    counted rather than aborting the import.

    Returns:
        Tuple of (imported, skipped, errors)
    """
    with path.open("r", encoding="utf-8") as f:
        snapshot = json.load(f)

    collections = snapshot.get("data", {})
    imported = skipped = errors = 0

    for key, entity in BACKUP_COLLECTIONS.items():
        for record in collections.get(key, []):
            if not isinstance(record, dict) or not record.get("id"):
                skipped += 1
                continue
            try:
                store.create(entity, record)
                imported += 1
                if imported % 1000 == 0:
                    logger.info(f"Imported {imported} records...")
            except StoreError as e:
                logger.warning("Skipping record", entity=entity, record_id=record.get("id"), error=str(e))
                errors += 1

    logger.info("Import complete", imported=imported, skipped=skipped, errors=errors)
    return imported, skipped, errors
