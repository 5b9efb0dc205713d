# event_approval/services/letter_generator.py

import io
import logging
from datetime import datetime, timezone
from typing import Optional
from xml.sax.saxutils import escape

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from event_approval.core.config import settings
from event_approval.models.event_request import EventRequest
from event_approval.services.workflow_errors import LetterNotAvailable

logger = logging.getLogger(__name__)

STATUS_MARKS = {"Approved": "Approved", "Recreated": "Recreation requested"}


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%d %b %Y %H:%M UTC")


class LetterGenerator:
    """
    Renders the approval letter for a completed request: a one-page summary
    with the full decision timeline, followed by the pages of the submitted
    report when one is supplied.
    """

    def __init__(self, institution_name: Optional[str] = None, institution_address: Optional[str] = None):
        self.institution_name = institution_name or settings.INSTITUTION_NAME
        self.institution_address = institution_address or settings.INSTITUTION_ADDRESS

    def render(self, request: EventRequest, report_bytes: Optional[bytes] = None) -> bytes:
        if not request.is_completed:
            raise LetterNotAvailable("The approval letter is available once every approver has approved.")

        letter = self._render_letter(request)
        if not report_bytes:
            return letter

        try:
            return self._append_report(letter, report_bytes)
        except (PdfReadError, ValueError) as e:
            logger.error(f"Could not append report to letter for {request.id}; sending letter only: {e}", exc_info=True)
            return letter

    def _render_letter(self, request: EventRequest) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=1.5 * cm,
            leftMargin=1.5 * cm,
            topMargin=1.5 * cm,
            bottomMargin=1.5 * cm,
            title=f"Approval Report {request.reference_no or request.id}",
            invariant=1,
        )

        styles = getSampleStyleSheet()
        head_style = ParagraphStyle('LetterHead', parent=styles['Heading1'], fontSize=16, alignment=TA_CENTER, spaceAfter=2)
        sub_style = ParagraphStyle('LetterSub', parent=styles['Normal'], fontSize=11, alignment=TA_CENTER, spaceAfter=2)
        section_style = ParagraphStyle('Section', parent=styles['Heading3'], fontSize=12, textColor=colors.HexColor('#2c3e50'))
        body_style = ParagraphStyle('Body', parent=styles['Normal'], fontSize=10, leading=14)
        cell_style = ParagraphStyle('Cell', parent=styles['Normal'], fontSize=9, leading=11)

        content = [
            Paragraph(f"<b>{escape(self.institution_name)}</b>", head_style),
            Paragraph(escape(self.institution_address), sub_style),
            Paragraph("<b>ACADEMIC - FORMS</b>", sub_style),
            Paragraph("<b>EVENT APPROVAL REPORT</b>", sub_style),
            Spacer(1, 16),
            Paragraph(f"Reference No: {escape(request.reference_no or '-')}", section_style),
            Paragraph(f"Event: {escape(request.event_name)}", section_style),
            Spacer(1, 6),
            Paragraph(f"<b>Staff:</b> {escape(request.staff_name)}", body_style),
            Paragraph(f"<b>Department:</b> {escape(request.department)}", body_style),
            Paragraph(f"<b>Event Date:</b> {escape(request.event_date)}", body_style),
            Paragraph(f"<b>Purpose:</b> {escape(request.purpose)}", body_style),
            Paragraph(f"<b>Status:</b> {escape(request.overall_status)}", body_style),
            Spacer(1, 12),
            Paragraph("Approval Timeline", section_style),
        ]

        rows = [["Role", "Status", "Comments", "Date & Time"]]
        for record in request.approvals:
            rows.append([
                record.role,
                STATUS_MARKS.get(record.status, record.status),
                Paragraph(escape(record.comments or "-"), cell_style),
                _format_time(record.decided_at),
            ])
        table = Table(rows, colWidths=[2.5 * cm, 3.5 * cm, 7 * cm, 4.5 * cm], repeatRows=1)
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#3498db')),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#dddddd')),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ]))
        content.append(table)

        doc.build(content)
        return buffer.getvalue()

    @staticmethod
    def _append_report(letter: bytes, report_bytes: bytes) -> bytes:
        writer = PdfWriter()
        for source in (letter, report_bytes):
            for page in PdfReader(io.BytesIO(source)).pages:
                writer.add_page(page)
        output = io.BytesIO()
        writer.write(output)
        return output.getvalue()


letter_generator = LetterGenerator()
