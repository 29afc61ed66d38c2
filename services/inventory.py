import db
from services import validation
from services.layout import NORMAL_LEVELS, walk_order_key


def _location_view(location, used=None):
    view = {
        "location_id": location["location_id"],
        "row": location["row"],
        "bay": location["bay"],
        "side": location["side"],
        "location_code": location["location_code"],
    }
    if used is not None:
        view["capacity"] = location["capacity"]
        view["used"] = used
        view["free"] = location["capacity"] - used
    return view


def get_layout(connection, registry):
    used = db.used_by_location(connection)
    return [_location_view(loc, used.get(loc["location_id"], 0)) for loc in registry]


def get_shelf_contents(connection, registry, row, bay, side):
    location = registry.find(row, bay, side)
    if not location:
        return validation.failure(validation.NOT_FOUND, "Shelf not found for given row/bay/side")

    by_isbn = {}
    for rec in db.list_location_stock(connection, location["location_id"]):
        levels = by_isbn.setdefault(rec["isbn"], {level: 0 for level in NORMAL_LEVELS})
        levels[rec["level"]] += rec["quantity"]

    items = []
    level_items = []
    for isbn in sorted(by_isbn):
        levels = by_isbn[isbn]
        total = sum(levels.values())
        items.append({"isbn": isbn, "quantity": total})
        level_items.append(
            {
                "isbn": isbn,
                "total": total,
                "level1": levels[1],
                "level2": levels[2],
                "level3": levels[3],
                "level4": levels[4],
            }
        )

    blowout_items = [
        {"isbn": rec["isbn"], "quantity": rec["quantity"]}
        for rec in db.list_location_blowout(connection, location["location_id"])
    ]

    return {
        "ok": True,
        "location": _location_view(location),
        "items": items,
        "level_items": level_items,
        "blowout_items": blowout_items,
        "blowout_total": sum(entry["quantity"] for entry in blowout_items),
        "total": sum(entry["quantity"] for entry in items),
    }


def get_item_locations(connection, registry, isbn):
    clean_isbn = validation.clean_isbn(isbn)
    if not clean_isbn:
        return validation.validation_failure({"isbn": "Isbn is required."}, "isbn query param is required")

    item = db.get_item_by_isbn(connection, clean_isbn)
    locations = []
    if item:
        for rec in db.list_item_stock(connection, item["id"]):
            location = registry.get(rec["location_id"])
            if not location:
                continue
            entry = _location_view(location)
            entry["level"] = rec["level"]
            entry["quantity"] = rec["quantity"]
            locations.append(entry)
    locations.sort(key=lambda entry: (walk_order_key(entry), entry["level"]))

    return {
        "ok": True,
        "isbn": clean_isbn,
        "total": sum(entry["quantity"] for entry in locations),
        "locations": locations,
    }


def get_inventory_index(connection, registry, query="", limit=None):
    query = str(query or "").strip()
    aggregated = {}
    for rec in db.list_stock_with_isbn(connection, query or None):
        entry = aggregated.setdefault(rec["isbn"], {"isbn": rec["isbn"], "total": 0, "by_location": {}})
        entry["total"] += rec["quantity"]
        entry["by_location"][rec["location_id"]] = (
            entry["by_location"].get(rec["location_id"], 0) + rec["quantity"]
        )

    items = []
    for entry in aggregated.values():
        locations = []
        for location_id, qty in entry["by_location"].items():
            location = registry.get(location_id)
            if not location:
                continue
            view = _location_view(location)
            view["quantity"] = qty
            locations.append(view)
        locations.sort(key=walk_order_key)
        items.append({"isbn": entry["isbn"], "total": entry["total"], "locations": locations})

    items.sort(key=lambda entry: (-entry["total"], entry["isbn"]))
    if limit:
        items = items[: int(limit)]
    return items


def suggest_location(connection, registry, quantity):
    errors = {}
    qty = validation.validate_positive_int(quantity, "quantity", errors)
    if errors:
        return validation.validation_failure(errors, "isbn and positive quantity are required")

    used = db.used_by_location(connection)
    walk = registry.walk_order()
    for location in walk:
        if location["capacity"] - used.get(location["location_id"], 0) >= qty:
            return {"ok": True, "location_code": location["location_code"], "location_id": location["location_id"]}
    # No single face fits all of it; fall back to the first face with any room.
    for location in walk:
        if location["capacity"] - used.get(location["location_id"], 0) > 0:
            return {"ok": True, "location_code": location["location_code"], "location_id": location["location_id"]}
    return validation.failure(validation.NO_FREE_SPACE, "No single shelf has enough free space", requested=qty)


def get_global_overflow(connection):
    items = db.list_overflow(connection)
    return {"total": sum(entry["quantity"] for entry in items), "items": items}


def get_ledger_totals(connection):
    movements = db.movement_totals(connection)
    received = sum(movements[kind] for kind in db.INBOUND_KINDS)
    shipped = movements["ship"]
    stock = db.total_stock(connection)
    blowout = db.total_blowout(connection)
    overflow = db.total_overflow(connection)
    return {
        "received": received,
        "shipped": shipped,
        "stock": stock,
        "blowout": blowout,
        "overflow": overflow,
        "balanced": stock + blowout + overflow == received - shipped,
        "movements": movements,
    }
