"""
PDF documents: fee receipts, transfer certificates, admit cards, salary slips.
"""

from datetime import datetime
from enum import Enum
from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

PDF_MEDIA_TYPE = "application/pdf"

HEADER_COLOR = colors.HexColor("#1a3a52")


def _label(value) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def _styles() -> dict[str, ParagraphStyle]:
    styles = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "DocTitle",
            parent=styles["Heading1"],
            fontSize=16,
            textColor=HEADER_COLOR,
            spaceAfter=6,
            alignment=TA_CENTER,
            fontName="Helvetica-Bold",
        ),
        "subtitle": ParagraphStyle(
            "DocSubtitle",
            parent=styles["Normal"],
            fontSize=10,
            textColor=colors.HexColor("#333333"),
            spaceAfter=3,
            alignment=TA_CENTER,
        ),
        "body": styles["Normal"],
    }


def _details_table(rows: list[tuple[str, str]]) -> Table:
    """Two-column label/value table."""
    table = Table([[label, value] for label, value in rows], colWidths=[2.2 * inch, 4.0 * inch])
    table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("BACKGROUND", (0, 0), (0, -1), colors.HexColor("#e8eef5")),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("LEFTPADDING", (0, 0), (-1, -1), 6),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]))
    return table


def _grid_table(header: list[str], rows: list[list[str]]) -> Table:
    table = Table([header, *rows])
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f5f5f5")]),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
    ]))
    return table


def _build(title: str, school_name: str, sections: list) -> BytesIO:
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, topMargin=0.6 * inch, title=title)
    styles = _styles()

    story = [
        Paragraph(school_name, styles["title"]),
        Paragraph(title, styles["subtitle"]),
        Paragraph(f"Generated: {datetime.now().strftime('%d %B %Y, %H:%M')}", styles["subtitle"]),
        Spacer(1, 0.25 * inch),
    ]
    for section in sections:
        story.append(section)
        story.append(Spacer(1, 0.2 * inch))

    doc.build(story)
    buffer.seek(0)
    return buffer


def fee_receipt_pdf(school, student, fee_structure, payment, student_fee) -> BytesIO:
    """Receipt for one fee payment."""
    return _build(
        "Fee Receipt",
        school.name,
        [
            _details_table([
                ("Receipt No.", payment.receipt_number),
                ("Date", payment.paid_at.strftime("%d %B %Y")),
                ("Student", student.name),
                ("Roll Number", student.roll_number),
                ("Fee", fee_structure.name),
                ("Amount Paid", f"{payment.amount:.2f}"),
                ("Payment Mode", _label(payment.payment_mode)),
                ("Total Fee", f"{student_fee.total_amount:.2f}"),
                ("Balance Due", f"{student_fee.due_amount:.2f}"),
            ]),
        ],
    )


def transfer_certificate_pdf(school, student, certificate, last_class_name: str) -> BytesIO:
    styles = _styles()
    statement = Paragraph(
        f"This is to certify that <b>{student.name}</b> was a student of this school, "
        f"last studying in class <b>{last_class_name}</b>, and has left the school.",
        styles["body"],
    )
    return _build(
        "Transfer Certificate",
        school.name,
        [
            _details_table([
                ("TC Number", certificate.tc_number),
                ("Issue Date", certificate.issue_date.strftime("%d %B %Y")),
                ("Student", student.name),
                ("Roll Number", student.roll_number),
                ("Date of Birth", student.date_of_birth.strftime("%d %B %Y") if student.date_of_birth else "-"),
                ("Last Class", last_class_name),
                ("Reason", certificate.reason),
            ]),
            statement,
        ],
    )


def admit_card_pdf(school, student, exam, admit_card, class_name: str, subjects: list[tuple[str, str]]) -> BytesIO:
    """Admit card; `subjects` is a list of (subject name, max marks)."""
    sections = [
        _details_table([
            ("Exam", exam.name),
            ("Student", student.name),
            ("Roll Number", admit_card.roll_number),
            ("Class", class_name),
            ("Exam Center", admit_card.exam_center or "-"),
            ("Dates", f"{exam.start_date:%d %b %Y} to {exam.end_date:%d %b %Y}"),
        ]),
    ]
    if subjects:
        sections.append(_grid_table(["Subject", "Max Marks"], [[name, marks] for name, marks in subjects]))
    return _build("Admit Card", school.name, sections)


def salary_slip_pdf(school, staff, calculation, payment=None) -> BytesIO:
    rows = [
        ("Employee", staff.name),
        ("Role", _label(staff.role)),
        ("Month", calculation.month),
        ("Base Salary", f"{calculation.base_salary:.2f}"),
        ("Working Days", str(calculation.working_days)),
        ("Days Present", str(calculation.attendance_days)),
        ("Allowances", f"{calculation.allowances:.2f}"),
        ("Gross Salary", f"{calculation.gross_salary:.2f}"),
        ("Deductions", f"{calculation.deductions:.2f}"),
        ("Net Payable", f"{calculation.net_payable:.2f}"),
        ("Status", _label(calculation.status)),
    ]
    if payment is not None:
        rows.append(("Paid On", payment.payment_date.strftime("%d %B %Y")))
        rows.append(("Payment Mode", _label(payment.payment_mode)))
    return _build("Salary Slip", school.name, [_details_table(rows)])
