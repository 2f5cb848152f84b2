"""Report exporter for LifeOS.

Generates Word (.docx) documents from weekly focus summaries using python-docx.
"""

import logging
import os
from datetime import timedelta

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt

from lifeos.core.models import FocusWeekSummary
from lifeos.reporting.formatter import NO_TASK_LABEL, TextFormatter

logger = logging.getLogger(__name__)


class ReportExporter:
    """Exports weekly focus data to a formatted Word document (.docx)."""

    def export_weekly(
        self, summary: FocusWeekSummary, user_name: str, output_path: str
    ) -> str:
        """Generate a .docx file from weekly summary data.

        Args:
            summary: The weekly summary to export.
            user_name: The user's configured display name.
            output_path: File path for the generated .docx file.

        Returns:
            The path to the generated file.
        """
        parent_dir = os.path.dirname(output_path)
        if parent_dir:
            os.makedirs(parent_dir, exist_ok=True)

        doc = Document()
        self._add_title_page(doc, summary, user_name)

        doc.add_heading("Weekly Focus", level=1)
        doc.add_paragraph(
            f"{summary.total_sessions} sessions, "
            f"{TextFormatter.format_duration(timedelta(minutes=summary.total_minutes))} "
            f"focused, {summary.xp_earned} XP earned."
        )
        self._add_task_table(doc, summary.minutes_by_task, summary.total_minutes)

        doc.add_heading("Daily Breakdown", level=1)
        for daily in summary.daily_breakdowns:
            doc.add_heading(daily.date.strftime("%A, %B %d, %Y"), level=2)
            if not daily.sessions:
                doc.add_paragraph("No focus sessions recorded.")
            else:
                self._add_task_table(doc, daily.minutes_by_task, daily.total_minutes)

        doc.save(output_path)
        logger.info("Weekly report written to %s", output_path)
        return output_path

    def _add_title_page(self, doc, summary: FocusWeekSummary, user_name: str) -> None:
        title_para = doc.add_paragraph()
        title_para.alignment = WD_ALIGN_PARAGRAPH.CENTER
        run = title_para.add_run("LifeOS Weekly Focus Report")
        run.bold = True
        run.font.size = Pt(24)

        start_str = summary.start_date.strftime("%B %d, %Y")
        end_str = summary.end_date.strftime("%B %d, %Y")
        date_para = doc.add_paragraph()
        date_para.alignment = WD_ALIGN_PARAGRAPH.CENTER
        run = date_para.add_run(f"{start_str} - {end_str}")
        run.font.size = Pt(14)

        if user_name:
            name_para = doc.add_paragraph()
            name_para.alignment = WD_ALIGN_PARAGRAPH.CENTER
            run = name_para.add_run(f"Prepared for: {user_name}")
            run.font.size = Pt(12)

        doc.add_page_break()

    def _add_task_table(self, doc, by_task: dict[str, int], total_minutes: int) -> None:
        """Task / time table with a bold header and total row."""
        table = doc.add_table(rows=len(by_task) + 2, cols=2)
        table.style = "Light Grid Accent 1"

        header = table.rows[0].cells
        header[0].text = "Task"
        header[1].text = "Focus Time"

        for i, (task, minutes) in enumerate(by_task.items(), start=1):
            cells = table.rows[i].cells
            cells[0].text = task or NO_TASK_LABEL
            cells[1].text = TextFormatter.format_duration(timedelta(minutes=minutes))

        total = table.rows[-1].cells
        total[0].text = "Total"
        total[1].text = TextFormatter.format_duration(timedelta(minutes=total_minutes))

        for row in (table.rows[0], table.rows[-1]):
            for cell in row.cells:
                for paragraph in cell.paragraphs:
                    for run in paragraph.runs:
                        run.bold = True

        doc.add_paragraph()
