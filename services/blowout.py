import db
from services import validation


def place_on_blowout(connection, registry, item_id, row, bay, side, quantity):
    location = registry.find(row, bay, side)
    if not location:
        return validation.failure(validation.NOT_FOUND, "Shelf not found.")

    errors = {}
    qty = validation.validate_positive_int(quantity, "quantity", errors)
    if errors:
        return validation.validation_failure(errors, "Quantity must be a positive number.")

    # No capacity check: operators may deliberately overfill blowout.
    new_total = db.add_blowout(connection, item_id, location["location_id"], qty)
    return {
        "ok": True,
        "location_id": location["location_id"],
        "location_code": location["location_code"],
        "added": qty,
        "new_total_on_blowout": new_total,
    }


def assign_manual(connection, registry, isbn, row, bay, side, quantity):
    errors = {}
    clean_isbn = validation.clean_isbn(isbn)
    validation.validate_required(clean_isbn, "isbn", errors)
    validation.validate_required(row, "row", errors)
    validation.validate_required(side, "side", errors)
    if bay is None or bay == "":
        errors["bay"] = "Bay is required."
    validation.validate_positive_int(quantity, "quantity", errors)
    if errors:
        return validation.validation_failure(
            errors, "isbn, row, bay, side, and positive quantity are required"
        )

    if not registry.find(row, bay, side):
        return validation.failure(validation.NOT_FOUND, "Shelf not found.")

    item = db.get_or_create_item(connection, clean_isbn)
    result = place_on_blowout(connection, registry, item["id"], row, bay, side, quantity)
    if not result.get("ok"):
        return result

    db.add_movement(connection, item["id"], "blowout", result["added"], location_id=result["location_id"])
    result["isbn"] = clean_isbn
    return result


def assign_from_overflow(connection, registry, isbn, row, bay, side, quantity):
    errors = {}
    clean_isbn = validation.clean_isbn(isbn)
    validation.validate_required(clean_isbn, "isbn", errors)
    qty = validation.validate_positive_int(quantity, "quantity", errors)
    if errors:
        return validation.validation_failure(errors)

    item = db.get_item_by_isbn(connection, clean_isbn)
    if not item:
        return validation.failure(validation.NOT_FOUND, "ISBN not found.", isbn=clean_isbn)

    available = db.get_overflow_quantity(connection, item["id"])
    if available <= 0:
        return validation.failure(
            validation.INSUFFICIENT_STOCK,
            "No unassigned overflow available for this ISBN.",
            isbn=clean_isbn,
            requested=qty,
            available=0,
        )

    moved = min(qty, available)
    db.subtract_overflow(connection, item["id"], moved)

    try:
        result = place_on_blowout(connection, registry, item["id"], row, bay, side, moved)
    except Exception:
        db.add_overflow(connection, item["id"], moved)
        raise

    if not result.get("ok"):
        # Put the units back so overflow is never lost.
        db.add_overflow(connection, item["id"], moved)
        return validation.failure(
            result.get("error") or validation.NOT_FOUND,
            result.get("message") or "Failed to assign overflow to blowout.",
            isbn=clean_isbn,
        )

    db.add_movement(
        connection,
        item["id"],
        "overflow_to_blowout",
        moved,
        location_id=result["location_id"],
    )
    return {
        "ok": True,
        "isbn": clean_isbn,
        "moved": moved,
        "remaining_overflow": db.get_overflow_quantity(connection, item["id"]),
        "location_id": result["location_id"],
        "location_code": result["location_code"],
        "new_total_on_blowout": result["new_total_on_blowout"],
    }
