import logging
import os
import re
from datetime import date

from flask import Flask, Response, jsonify, request

from services import exports, validation
from services.pick_list_importer import PickListImporter
from services.warehouse import get_warehouse

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
ERROR_STATUS_CODES = {
    validation.VALIDATION_ERROR: 400,
    validation.NOT_FOUND: 404,
    validation.INSUFFICIENT_STOCK: 409,
    validation.NOT_RECEIVABLE: 400,
    validation.NO_FREE_SPACE: 409,
}


def _env_bool(name, default=False):
    raw = os.environ.get(name)
    if raw is None:
        return bool(default)
    normalized = str(raw).strip().lower()
    if normalized in {"1", "true", "yes", "on", "y"}:
        return True
    if normalized in {"0", "false", "no", "off", "n"}:
        return False
    return bool(default)


app = Flask(__name__)
_raw_web_concurrency = (os.environ.get("WEB_CONCURRENCY") or "").strip()
try:
    _configured_web_concurrency = int(_raw_web_concurrency) if _raw_web_concurrency else 1
except ValueError:
    _configured_web_concurrency = 1
if _configured_web_concurrency > 1:
    logger.warning(
        "WEB_CONCURRENCY=%s detected. Shelf ledgers are process-local; "
        "set WEB_CONCURRENCY=1 so every request sees the same warehouse.",
        _configured_web_concurrency,
    )


def _truthy(value):
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"1", "true", "yes", "on", "y"}


def _get_warehouse():
    return get_warehouse()


def _json_body():
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _respond(result):
    if result.get("ok"):
        return jsonify(result)
    status = ERROR_STATUS_CODES.get(result.get("error"), 400)
    return jsonify(result), status


def _slug(value):
    text = re.sub(r"[^A-Za-z0-9]+", "_", str(value or "").strip()).strip("_")
    return text or "pick_list"


@app.route("/inventory/suggest-location", methods=["POST"])
def suggest_location():
    body = _json_body()
    if not validation.clean_isbn(body.get("isbn")):
        return jsonify({"ok": False, "error": validation.VALIDATION_ERROR,
                        "message": "isbn and positive quantity are required"}), 400
    return _respond(_get_warehouse().suggest_location(body.get("quantity")))


@app.route("/inventory/receive", methods=["POST"])
def receive_stock():
    body = _json_body()
    return _respond(_get_warehouse().receive(body.get("isbn"), body.get("quantity")))


@app.route("/inventory/put-to-shelf", methods=["POST"])
def put_to_shelf():
    body = _json_body()
    result = _get_warehouse().put_exact(
        body.get("isbn"),
        body.get("quantity"),
        row=body.get("row"),
        bay=body.get("bay"),
        side=body.get("side"),
        level=body.get("level"),
        shelf_barcode=body.get("shelf_barcode"),
        allow_overfill=_truthy(body.get("allow_overfill")),
        with_shelf=True,
    )
    return _respond(result)


@app.route("/inventory/layout")
def layout():
    return jsonify(_get_warehouse().layout())


@app.route("/inventory/item-locations")
def item_locations():
    return _respond(_get_warehouse().item_locations(request.args.get("isbn")))


@app.route("/inventory/ship", methods=["POST"])
def ship_stock():
    body = _json_body()
    return _respond(_get_warehouse().ship_total(body.get("isbn"), body.get("quantity")))


@app.route("/inventory/shelf")
def shelf_contents():
    row = request.args.get("row")
    bay = request.args.get("bay")
    side = request.args.get("side")
    if not row or not bay or not side:
        return jsonify({"ok": False, "error": validation.VALIDATION_ERROR,
                        "message": "row, bay, and side query params are required"}), 400
    return _respond(_get_warehouse().shelf_contents(row, bay, side))


@app.route("/inventory/ship-from-shelf", methods=["POST"])
def ship_from_shelf():
    body = _json_body()
    return _respond(
        _get_warehouse().ship_from_face(body.get("isbn"), body.get("location_id"), body.get("quantity"))
    )


@app.route("/inventory/assign-to-blowout", methods=["POST"])
def assign_to_blowout():
    body = _json_body()
    result = _get_warehouse().assign_manual(
        body.get("isbn"), body.get("row"), body.get("bay"), body.get("side"), body.get("quantity"),
        with_shelf=True,
    )
    return _respond(result)


@app.route("/inventory/global-overflow")
def global_overflow():
    return jsonify(_get_warehouse().global_overflow())


@app.route("/inventory/assign-overflow-to-blowout", methods=["POST"])
def assign_overflow_to_blowout():
    body = _json_body()
    result = _get_warehouse().assign_from_overflow(
        body.get("isbn"), body.get("row"), body.get("bay"), body.get("side"), body.get("quantity"),
        with_shelf=True,
    )
    return _respond(result)


@app.route("/inventory/pick-plan", methods=["POST"])
def pick_plan():
    body = _json_body()
    return _respond(_get_warehouse().build_pick_plan(body.get("lines")))


@app.route("/inventory/pick-plan/upload", methods=["POST"])
def pick_plan_upload():
    file = request.files.get("file")
    if not file or not getattr(file, "filename", ""):
        return jsonify({"ok": False, "error": validation.VALIDATION_ERROR,
                        "message": "Please choose a CSV file to upload."}), 400
    try:
        parsed = PickListImporter().parse_csv(file.stream)
    except ValueError as exc:
        return jsonify({"ok": False, "error": validation.VALIDATION_ERROR,
                        "message": f"Upload failed: {exc}"}), 400

    if not parsed["lines"]:
        return jsonify({"ok": False, "error": validation.VALIDATION_ERROR,
                        "message": "No usable pick lines found in the upload.",
                        "rejected": parsed["rejected"]}), 400

    result = _get_warehouse().build_pick_plan(parsed["lines"])
    if result.get("ok"):
        result["upload"] = {
            "filename": getattr(file, "filename", ""),
            "total_rows": parsed["total_rows"],
            "rejected": parsed["rejected"],
        }
    return _respond(result)


@app.route("/inventory/pick-plan.xlsx", methods=["POST"])
def pick_plan_export():
    body = _json_body()
    plan = _get_warehouse().build_pick_plan(body.get("lines"))
    if not plan.get("ok"):
        return _respond(plan)

    list_name = str(body.get("name") or "").strip()
    try:
        workbook = exports.build_pick_plan_workbook(plan, list_name=list_name or None)
    except Exception:
        logger.exception("Failed to build pick plan workbook for list=%s", list_name)
        return jsonify({"ok": False, "error": "export_failed", "message": "Unable to build the pick list workbook."}), 500
    filename = f"{_slug(list_name)}_{date.today().isoformat()}.xlsx"
    return Response(
        exports.workbook_bytes(workbook),
        mimetype=XLSX_MIMETYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@app.route("/inventory/inventory-index")
def inventory_index():
    items = _get_warehouse().inventory_index(request.args.get("query") or "")
    return jsonify({"count": len(items), "items": items})


@app.route("/inventory/summary")
def inventory_summary():
    return jsonify(_get_warehouse().summary())


@app.route("/inventory/ledger-totals")
def ledger_totals():
    return jsonify(_get_warehouse().ledger_totals())


@app.route("/inventory/export.xlsx")
def inventory_export():
    warehouse = _get_warehouse()
    workbook = exports.build_inventory_workbook(
        warehouse.inventory_index(limited=False),
        warehouse.global_overflow(),
        warehouse.layout(),
    )
    filename = f"inventory_{date.today().isoformat()}.xlsx"
    return Response(
        exports.workbook_bytes(workbook),
        mimetype=XLSX_MIMETYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app.run(debug=_env_bool("FLASK_DEBUG", default=True))
