import re

VALIDATION_ERROR = "validation"
NOT_FOUND = "not_found"
INSUFFICIENT_STOCK = "insufficient_stock"
NOT_RECEIVABLE = "not_receivable"
NO_FREE_SPACE = "no_free_space"

SHELF_BARCODE_PATTERN = re.compile(r"^([A-D])-(\d{1,2})-(F|B)-L([1-4])$")


def failure(kind, message, **detail):
    result = {"ok": False, "error": kind, "message": message}
    result.update(detail)
    return result


def validation_failure(errors, message=None):
    if not message:
        message = next(iter(errors.values()), "Invalid request.")
    return failure(VALIDATION_ERROR, message, errors=dict(errors))


def clean_isbn(value):
    if value is None:
        return ""
    return str(value).strip()


def validate_required(value, field_name, errors):
    if not value:
        errors[field_name] = f"{field_name.replace('_', ' ').title()} is required."


def validate_positive_int(value, field_name, errors):
    if value is None or value == "" or isinstance(value, bool):
        errors[field_name] = f"{field_name.replace('_', ' ').title()} is required."
        return None
    try:
        parsed = int(str(value).strip())
    except ValueError:
        parsed = 0
    if parsed <= 0:
        errors[field_name] = (
            f"{field_name.replace('_', ' ').title()} must be a positive number."
        )
        return None
    return parsed


def validate_level(value, field_name, errors):
    level = validate_positive_int(value, field_name, errors)
    if level is not None and level > 4:
        errors[field_name] = "Level must be 1-4 for shelf placement."
        return None
    return level


def parse_shelf_barcode(value, errors, field_name="shelf_barcode"):
    text = str(value or "").strip().upper()
    match = SHELF_BARCODE_PATTERN.match(text)
    if not match:
        errors[field_name] = "Invalid shelf barcode. Use format like B-02-F-L1."
        return None
    return {
        "row": match.group(1),
        "bay": int(match.group(2)),
        "side": match.group(3),
        "level": int(match.group(4)),
    }
