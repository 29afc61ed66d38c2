import db
from services import validation
from services.layout import BLOWOUT_CAPACITY, BLOWOUT_LEVEL, LEVEL_SOFT_CAP, NORMAL_LEVELS

UNASSIGNED_OVERFLOW_CODE = "UNASSIGNED-OVERFLOW"
UNASSIGNED_LEVEL = "UNASSIGNED"


def level_caps_for_location(location):
    # Planning cap per level, not a hard physical limit.
    if location["capacity"] <= 0:
        return {level: 0 for level in NORMAL_LEVELS}
    return {level: LEVEL_SOFT_CAP for level in NORMAL_LEVELS}


def _allocation(location, quantity, level, blowout=False):
    return {
        "location_id": location["location_id"],
        "location_code": location["location_code"],
        "quantity": quantity,
        "level": level,
        "blowout": blowout,
    }


def _parse_isbn_and_quantity(isbn, quantity, errors):
    clean = validation.clean_isbn(isbn)
    validation.validate_required(clean, "isbn", errors)
    qty = validation.validate_positive_int(quantity, "quantity", errors)
    return clean, qty


def suggest_blowout_plan(connection, registry, quantity):
    blowout_used = db.blowout_by_location(connection)
    plan = []
    to_allocate = quantity
    for location in registry.receivable():
        if to_allocate <= 0:
            break
        free = max(0, BLOWOUT_CAPACITY - blowout_used.get(location["location_id"], 0))
        if free <= 0:
            continue
        qty = min(free, to_allocate)
        suggestion = _allocation(location, qty, BLOWOUT_LEVEL, blowout=True)
        suggestion["suggested"] = True
        plan.append(suggestion)
        to_allocate -= qty
    return plan


def receive(connection, registry, isbn, quantity):
    errors = {}
    clean_isbn, qty = _parse_isbn_and_quantity(isbn, quantity, errors)
    if errors:
        return validation.validation_failure(errors, "isbn and positive quantity are required")

    item = db.get_or_create_item(connection, clean_isbn)
    remaining = qty
    allocations = []

    for location in registry.walk_order():
        if remaining <= 0:
            break
        if location["capacity"] <= 0:
            continue
        caps = level_caps_for_location(location)
        for level in NORMAL_LEVELS:
            if remaining <= 0:
                break
            free = caps[level] - db.used_on_level(connection, location["location_id"], level)
            if free <= 0:
                continue
            to_place = min(free, remaining)
            db.add_stock(connection, item["id"], location["location_id"], level, to_place)
            allocations.append(_allocation(location, to_place, level))
            remaining -= to_place

    overflow = remaining
    if remaining > 0:
        # Blowout is manual only: suggest where the rest could go, never apply it.
        suggestions = suggest_blowout_plan(connection, registry, remaining)
        db.add_overflow(connection, item["id"], remaining)
        allocations.append(
            {
                "location_id": None,
                "location_code": UNASSIGNED_OVERFLOW_CODE,
                "quantity": remaining,
                "level": UNASSIGNED_LEVEL,
                "blowout": False,
                "blowout_suggestions": suggestions,
            }
        )

    db.add_movement(connection, item["id"], "receive", qty)
    return {
        "ok": True,
        "isbn": clean_isbn,
        "received": qty,
        "placed": qty - overflow,
        "overflow": overflow,
        "allocations": allocations,
    }


def ship_total(connection, registry, isbn, quantity):
    errors = {}
    clean_isbn, qty = _parse_isbn_and_quantity(isbn, quantity, errors)
    if errors:
        return validation.validation_failure(errors, "isbn and positive quantity are required")

    item = db.get_item_by_isbn(connection, clean_isbn)
    if not item:
        return validation.failure(validation.NOT_FOUND, "No stock exists for this ISBN", isbn=clean_isbn)

    available = db.total_item_stock(connection, item["id"])
    if available < qty:
        return validation.failure(
            validation.INSUFFICIENT_STOCK,
            "Not enough stock to ship requested quantity",
            isbn=clean_isbn,
            requested=qty,
            available=available,
        )

    remaining = qty
    allocations = []
    # Same walking order used for placing.
    for location in registry.walk_order():
        if remaining <= 0:
            break
        for level in NORMAL_LEVELS:
            if remaining <= 0:
                break
            on_hand = db.get_stock_quantity(connection, item["id"], location["location_id"], level)
            if on_hand <= 0:
                continue
            take = min(on_hand, remaining)
            db.remove_stock(connection, item["id"], location["location_id"], level, take)
            allocations.append(_allocation(location, take, level))
            remaining -= take

    db.add_movement(connection, item["id"], "ship", qty)
    return {
        "ok": True,
        "isbn": clean_isbn,
        "total_shipped": qty,
        "available_before": available,
        "allocations": allocations,
    }


def ship_from_face(connection, registry, isbn, location_id, quantity):
    errors = {}
    clean_isbn, qty = _parse_isbn_and_quantity(isbn, quantity, errors)
    validation.validate_positive_int(location_id, "location_id", errors)
    if errors:
        return validation.validation_failure(
            errors, "isbn, location_id, and positive quantity are required"
        )

    location = registry.get(location_id)
    if not location:
        return validation.failure(validation.NOT_FOUND, "Shelf not found.", location_id=location_id)

    item = db.get_item_by_isbn(connection, clean_isbn)
    if not item:
        return validation.failure(validation.NOT_FOUND, "No stock exists for this ISBN", isbn=clean_isbn)

    available = db.location_item_stock(connection, item["id"], location["location_id"])
    if qty > available:
        return validation.failure(
            validation.INSUFFICIENT_STOCK,
            "Not enough stock on this shelf to ship requested quantity",
            isbn=clean_isbn,
            location_id=location["location_id"],
            requested=qty,
            available=available,
        )

    remaining = qty
    allocations = []
    for level in NORMAL_LEVELS:
        if remaining <= 0:
            break
        on_hand = db.get_stock_quantity(connection, item["id"], location["location_id"], level)
        if on_hand <= 0:
            continue
        take = min(on_hand, remaining)
        db.remove_stock(connection, item["id"], location["location_id"], level, take)
        allocations.append(_allocation(location, take, level))
        remaining -= take

    db.add_movement(connection, item["id"], "ship", qty, location_id=location["location_id"])
    return {
        "ok": True,
        "isbn": clean_isbn,
        "location_id": location["location_id"],
        "location_code": location["location_code"],
        "shipped": qty,
        "allocations": allocations,
        "remaining_on_face": db.location_item_stock(connection, item["id"], location["location_id"]),
    }


def _resolve_put_target(row, bay, side, level, shelf_barcode, errors):
    barcode = str(shelf_barcode or "").strip()
    if barcode:
        return validation.parse_shelf_barcode(barcode, errors)
    if not row or bay is None or bay == "" or not side or level is None or level == "":
        errors["shelf"] = "Shelf is required (shelf_barcode or row/bay/side/level)."
        return None
    parsed_level = validation.validate_level(level, "level", errors)
    if parsed_level is None:
        return None
    return {"row": row, "bay": bay, "side": side, "level": parsed_level}


def put_exact(
    connection,
    registry,
    isbn,
    quantity,
    row=None,
    bay=None,
    side=None,
    level=None,
    shelf_barcode=None,
    allow_overfill=False,
):
    errors = {}
    clean_isbn, qty = _parse_isbn_and_quantity(isbn, quantity, errors)
    target = _resolve_put_target(row, bay, side, level, shelf_barcode, errors)
    if errors:
        return validation.validation_failure(errors)

    location = registry.find(target["row"], target["bay"], target["side"])
    if not location:
        message = "Shelf not found for given barcode." if str(shelf_barcode or "").strip() else "Shelf not found."
        return validation.failure(validation.NOT_FOUND, message)
    if location["capacity"] <= 0:
        return validation.failure(
            validation.NOT_RECEIVABLE,
            "This shelf is not receivable (capacity 0).",
            location_code=location["location_code"],
        )

    lvl = target["level"]
    cap = level_caps_for_location(location)[lvl]
    used = db.used_on_level(connection, location["location_id"], lvl)

    result = {
        "ok": True,
        "isbn": clean_isbn,
        "requested": qty,
        "location_id": location["location_id"],
        "location_code": location["location_code"],
        "row": location["row"],
        "bay": location["bay"],
        "side": location["side"],
        "level": lvl,
        "overfill": bool(allow_overfill),
    }

    if not allow_overfill and cap - used <= 0:
        result.update(
            {
                "placed": 0,
                "remaining": qty,
                "message": (
                    f"This level is at the {cap}-book soft cap; use another level/shelf "
                    "or overfill intentionally."
                ),
            }
        )
        return result

    item = db.get_or_create_item(connection, clean_isbn)
    to_place = qty if allow_overfill else min(cap - used, qty)
    db.add_stock(connection, item["id"], location["location_id"], lvl, to_place)
    db.add_movement(
        connection,
        item["id"],
        "overfill" if allow_overfill else "put",
        to_place,
        location_id=location["location_id"],
        level=lvl,
    )

    remaining = max(0, qty - to_place)
    if allow_overfill:
        message = "Placed (overfill recorded)."
    elif remaining > 0:
        message = f"Placed what fits ({cap}-cap); scan another shelf label for the rest."
    else:
        message = "Placed successfully."
    result.update({"placed": to_place, "remaining": remaining, "message": message})
    return result
