import io

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

HEADER_FILL = PatternFill(fill_type="solid", fgColor="FFE5E7EB")
HEADER_FONT = Font(bold=True, color="FF1F2937")
BODY_FONT = Font(color="FF111827")
WARNING_FILL = PatternFill(fill_type="solid", fgColor="FFFDE68A")
WARNING_FONT = Font(bold=True, color="FF92400E")
THIN_SIDE = Side(style="thin", color="FFCBD5E1")
ALL_BORDER = Border(left=THIN_SIDE, right=THIN_SIDE, top=THIN_SIDE, bottom=THIN_SIDE)


def _write_header(sheet, headers, widths=None):
    sheet.append(headers)
    for idx, cell in enumerate(sheet[sheet.max_row], start=1):
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = ALL_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center")
        if widths and idx <= len(widths):
            sheet.column_dimensions[cell.column_letter].width = widths[idx - 1]
    sheet.freeze_panes = f"A{sheet.max_row + 1}"


def _append_body_row(sheet, values, fill=None, font=None):
    sheet.append(values)
    for cell in sheet[sheet.max_row]:
        cell.font = font or BODY_FONT
        cell.border = ALL_BORDER
        if fill:
            cell.fill = fill


def _format_levels(levels):
    return ", ".join(f"L{entry['level']} x{entry['quantity']}" for entry in levels or [])


def build_pick_plan_workbook(plan, list_name=None):
    workbook = Workbook()
    stops_sheet = workbook.active
    stops_sheet.title = "Stops"
    if list_name:
        stops_sheet.append([f"Pick list: {list_name}"])
        stops_sheet["A1"].font = Font(bold=True, size=14, color="FF1F2937")
    _write_header(
        stops_sheet,
        ["Stop #", "Shelf", "ISBN", "Quantity", "Levels", "Picked"],
        widths=[8, 12, 20, 10, 24, 10],
    )

    for stop_number, stop in enumerate(plan.get("stops") or [], start=1):
        for pick in stop.get("picks") or []:
            _append_body_row(
                stops_sheet,
                [
                    stop_number,
                    stop.get("location_code") or stop.get("key") or "",
                    pick.get("isbn") or "",
                    int(pick.get("quantity") or 0),
                    _format_levels(pick.get("levels")),
                    "",
                ],
            )

    missing_sheet = workbook.create_sheet("Missing")
    _write_header(missing_sheet, ["ISBN", "Requested", "Available", "Short"], widths=[20, 12, 12, 10])
    for entry in plan.get("missing") or []:
        _append_body_row(
            missing_sheet,
            [
                entry.get("isbn") or "",
                int(entry.get("requested") or 0),
                int(entry.get("available") or 0),
                int(entry.get("short") or 0),
            ],
            fill=WARNING_FILL,
            font=WARNING_FONT,
        )

    totals = plan.get("totals") or {}
    missing_sheet.append([])
    missing_sheet.append(["Total requested", int(totals.get("requested") or 0)])
    missing_sheet.append(["Total available", int(totals.get("available") or 0)])

    route_sheet = workbook.create_sheet("Route")
    _write_header(route_sheet, ["Row", "Direction", "Path"], widths=[8, 12, 60])
    diagram = plan.get("diagram") or {}
    for row in diagram.get("rows") or []:
        _append_body_row(
            route_sheet,
            [row.get("row") or "", row.get("direction") or "", " > ".join(row.get("path") or [])],
        )
    return workbook


def build_inventory_workbook(index_items, overflow, layout):
    workbook = Workbook()
    inventory_sheet = workbook.active
    inventory_sheet.title = "Inventory"
    _write_header(inventory_sheet, ["ISBN", "Shelf", "Quantity", "ISBN Total"], widths=[20, 12, 10, 12])
    for item in index_items or []:
        for location in item.get("locations") or []:
            _append_body_row(
                inventory_sheet,
                [
                    item.get("isbn") or "",
                    location.get("location_code") or "",
                    int(location.get("quantity") or 0),
                    int(item.get("total") or 0),
                ],
            )

    overflow_sheet = workbook.create_sheet("Overflow")
    _write_header(overflow_sheet, ["ISBN", "Unassigned Qty"], widths=[20, 16])
    for entry in (overflow or {}).get("items") or []:
        _append_body_row(
            overflow_sheet,
            [entry.get("isbn") or "", int(entry.get("quantity") or 0)],
            fill=WARNING_FILL,
            font=WARNING_FONT,
        )

    layout_sheet = workbook.create_sheet("Layout")
    _write_header(layout_sheet, ["Shelf", "Capacity", "Used", "Free"], widths=[12, 10, 10, 10])
    for location in layout or []:
        _append_body_row(
            layout_sheet,
            [
                location.get("location_code") or "",
                int(location.get("capacity") or 0),
                int(location.get("used") or 0),
                int(location.get("free") or 0),
            ],
        )
    return workbook


def workbook_bytes(workbook):
    buffer = io.BytesIO()
    workbook.save(buffer)
    buffer.seek(0)
    return buffer.getvalue()
