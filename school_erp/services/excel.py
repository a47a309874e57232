"""Excel exports built with openpyxl."""

from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

INVENTORY_HEADERS = [
    "Code",
    "Name",
    "Category",
    "Quantity",
    "Assigned To",
    "Condition",
    "Purchase Date",
    "Cost",
    "Remarks",
]


def table_workbook(title: str, headers: list[str], rows: list[list]) -> BytesIO:
    wb = Workbook()
    ws = wb.active
    ws.title = title

    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True, color="FFFFFF")
        cell.fill = PatternFill("solid", fgColor="1A3A52")

    for row in rows:
        ws.append(row)

    for i, header in enumerate(headers, start=1):
        longest = max([len(header)] + [len(str(row[i - 1] or "")) for row in rows])
        ws.column_dimensions[get_column_letter(i)].width = min(longest + 4, 40)

    out = BytesIO()
    wb.save(out)
    out.seek(0)
    return out


def inventory_workbook(items) -> BytesIO:
    rows = [
        [
            item.code,
            item.name,
            item.category,
            item.quantity,
            item.assigned_to or "",
            str(getattr(item.condition, "value", item.condition) or ""),
            item.purchase_date,
            float(item.cost),
            item.remarks or "",
        ]
        for item in items
    ]
    return table_workbook("Inventory", INVENTORY_HEADERS, rows)
