import math
from datetime import datetime, timezone

import db
from services import validation
from services.layout import NORMAL_LEVELS, location_code

AISLE_ORDER = ["A", "B", "C", "D"]
DIRECTION_ASC = "ASC"
DIRECTION_DESC = "DESC"


def _aisle_index(row):
    try:
        return AISLE_ORDER.index(row)
    except ValueError:
        return len(AISLE_ORDER)


def row_direction(row):
    # Serpentine: alternate bay direction per row so pickers never double back.
    return DIRECTION_ASC if _aisle_index(row) % 2 == 0 else DIRECTION_DESC


def _side_order(side):
    # Front before Back keeps the picker on one side of the aisle first.
    return 0 if str(side or "").upper()[:1] == "F" else 1


def route_sort_key(face):
    bay = int(face["bay"])
    directed_bay = bay if row_direction(face["row"]) == DIRECTION_ASC else -bay
    return (_aisle_index(face["row"]), directed_bay, _side_order(face["side"]))


def _coerce_quantity(value):
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(parsed) or math.isinf(parsed):
        return 0
    return int(math.floor(parsed))


def normalize_lines(lines):
    normalized = []
    for line in lines or []:
        if not isinstance(line, dict):
            continue
        isbn = validation.clean_isbn(line.get("isbn"))
        quantity = _coerce_quantity(line.get("quantity"))
        if not isbn or quantity <= 0:
            continue
        normalized.append({"isbn": isbn, "quantity": quantity})
    return normalized


def _group_into_stops(steps):
    stop_map = {}
    for step in steps:
        key = location_code(step["row"], step["bay"], step["side"])
        if key not in stop_map:
            stop_map[key] = {
                "key": key,
                "row": step["row"],
                "bay": step["bay"],
                "side": step["side"],
                "location_id": step["location_id"],
                "location_code": step["location_code"],
                "picks": [],
            }
        stop_map[key]["picks"].append(
            {"isbn": step["isbn"], "quantity": step["quantity"], "level": step["level"]}
        )

    for stop in stop_map.values():
        by_isbn = {}
        for pick in stop["picks"]:
            entry = by_isbn.setdefault(pick["isbn"], {"isbn": pick["isbn"], "quantity": 0, "levels": []})
            entry["quantity"] += pick["quantity"]
            entry["levels"].append({"level": pick["level"], "quantity": pick["quantity"]})
        stop["picks"] = sorted(by_isbn.values(), key=lambda entry: entry["isbn"])

    return sorted(stop_map.values(), key=route_sort_key)


def _build_diagram(stops):
    diagram = {"aisle_order": list(AISLE_ORDER), "rows": []}
    for row in AISLE_ORDER:
        path = []
        for stop in stops:
            if stop["row"] != row:
                continue
            label = location_code(row, stop["bay"], stop["side"])
            if label not in path:
                path.append(label)
        if path:
            diagram["rows"].append({"row": row, "direction": row_direction(row), "path": path})
    return diagram


def build_pick_plan(connection, registry, lines):
    if not isinstance(lines, (list, tuple)) or not lines:
        return validation.validation_failure(
            {"lines": "Lines are required."},
            "lines[] is required (e.g., [{isbn, quantity}])",
        )

    route = sorted(registry.receivable(), key=route_sort_key)
    steps = []
    missing = []
    total_requested = 0
    total_available = 0
    # Units already claimed by earlier lines of this plan, keyed by record.
    claimed = {}

    for line in normalize_lines(lines):
        requested = line["quantity"]
        total_requested += requested
        item = db.get_item_by_isbn(connection, line["isbn"])
        if not item:
            missing.append({"isbn": line["isbn"], "requested": requested, "available": 0, "short": requested})
            continue

        on_hand = {
            (rec["location_id"], rec["level"]): rec["quantity"]
            for rec in db.list_item_stock(connection, item["id"])
        }
        available = sum(
            max(0, qty - claimed.get((item["id"], loc_id, level), 0))
            for (loc_id, level), qty in on_hand.items()
        )
        total_available += available
        if available <= 0:
            missing.append({"isbn": line["isbn"], "requested": requested, "available": 0, "short": requested})
            continue

        remaining = requested
        for location in route:
            if remaining <= 0:
                break
            for level in NORMAL_LEVELS:
                if remaining <= 0:
                    break
                key = (item["id"], location["location_id"], level)
                free = on_hand.get((location["location_id"], level), 0) - claimed.get(key, 0)
                if free <= 0:
                    continue
                take = min(free, remaining)
                claimed[key] = claimed.get(key, 0) + take
                steps.append(
                    {
                        "isbn": line["isbn"],
                        "quantity": take,
                        "location_id": location["location_id"],
                        "location_code": location["location_code"],
                        "row": location["row"],
                        "bay": location["bay"],
                        "side": location["side"],
                        "level": level,
                    }
                )
                remaining -= take

        if remaining > 0:
            missing.append(
                {"isbn": line["isbn"], "requested": requested, "available": available, "short": remaining}
            )

    stops = _group_into_stops(steps)
    return {
        "ok": True,
        "steps": steps,
        "stops": stops,
        "diagram": _build_diagram(stops),
        "missing": missing,
        "totals": {"requested": total_requested, "available": total_available},
        "generated_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
    }
