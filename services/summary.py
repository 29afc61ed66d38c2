import math
import os
from datetime import datetime, timezone

import db


def _as_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(default)


ALERT_THRESHOLD_PCT = 95
CHRONIC_FULL_THRESHOLD_PCT = _as_int(os.environ.get("CHRONIC_FULL_THRESHOLD_PCT"), 95)
CHRONIC_MIN_HITS = _as_int(os.environ.get("CHRONIC_MIN_HITS"), 5)


def percent_full(used, capacity):
    if not capacity or capacity <= 0:
        return 0
    # Half-up rounding; round() would bank 12.5 down to 12.
    return int(math.floor(used * 100.0 / capacity + 0.5))


class ChronicShelfTracker:
    """How often each shelf face is very full at the moment a summary is taken.

    A face is sampled once per summary. This history is not derivable from the
    ledgers, so it lives with the warehouse that owns them.
    """

    def __init__(self, threshold_pct=None, min_hits=None):
        self.threshold_pct = CHRONIC_FULL_THRESHOLD_PCT if threshold_pct is None else threshold_pct
        self.min_hits = CHRONIC_MIN_HITS if min_hits is None else min_hits
        self._stats = {}

    def note_sample(self, location_id, pct, seen_at=None):
        stats = self._stats.setdefault(location_id, {"samples": 0, "hits": 0, "last_seen": None})
        stats["samples"] += 1
        if pct >= self.threshold_pct:
            stats["hits"] += 1
        stats["last_seen"] = seen_at or datetime.now(timezone.utc).isoformat(timespec="seconds")
        return dict(stats)

    def stats_for(self, location_id):
        return dict(self._stats.get(location_id) or {"samples": 0, "hits": 0, "last_seen": None})

    def is_chronic(self, location_id):
        return self.stats_for(location_id)["hits"] >= self.min_hits

    def reset(self):
        self._stats.clear()


def build_summary(connection, registry, tracker):
    used_by_location = db.used_by_location(connection)
    now = datetime.now(timezone.utc).isoformat(timespec="seconds")

    faces = []
    for location in registry:
        used = used_by_location.get(location["location_id"], 0)
        faces.append(
            {
                "location_id": location["location_id"],
                "location_code": location["location_code"],
                "row": location["row"],
                "bay": location["bay"],
                "side": location["side"],
                "used": used,
                "capacity": location["capacity"],
                "percent_full": percent_full(used, location["capacity"]),
            }
        )

    rows = {}
    for row in registry.rows:
        row_faces = [face for face in faces if face["row"] == row]
        capacity = sum(face["capacity"] for face in row_faces)
        used = sum(face["used"] for face in row_faces)
        rows[row] = {
            "row": row,
            "used": used,
            "capacity": capacity,
            "percent_full": percent_full(used, capacity),
        }

    receivable = [face for face in faces if face["capacity"] > 0]
    alerts = sorted(
        (dict(face) for face in receivable if face["percent_full"] >= ALERT_THRESHOLD_PCT),
        key=lambda face: -face["percent_full"],
    )

    chronic_full = []
    for face in receivable:
        stats = tracker.note_sample(face["location_id"], face["percent_full"], seen_at=now)
        if stats["hits"] < tracker.min_hits:
            continue
        entry = dict(face)
        entry.update(stats)
        entry["hit_rate"] = percent_full(stats["hits"], stats["samples"])
        chronic_full.append(entry)
    chronic_full.sort(key=lambda entry: -entry["hits"])

    return {
        "total_copies": sum(face["used"] for face in faces),
        "rows": rows,
        "alerts": alerts,
        "chronic_full": chronic_full,
        "updated_at": now,
    }
