"""
PDF generation service for resource exports using WeasyPrint.

Rows are rendered into an HTML table from a Jinja2 template, then converted
to PDF. The HTML step is usable on its own (and is what tests exercise);
WeasyPrint is only imported when a PDF is actually produced since it needs
native libraries.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from admin_panel.core.config import ADMIN_PANEL_NAME
from admin_panel.utils.datetime_utils import format_datetime_string, utc_now

logger = logging.getLogger(__name__)


class PDFService:
    """
    Service for rendering export tables as HTML and PDF.
    """

    def __init__(self):
        """Initialize PDF service with template loader."""
        # Templates ship inside the package (admin_panel/templates)
        template_dir = Path(__file__).parent.parent / "templates"
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(['html', 'xml'])
        )

        def format_cell(value: Any) -> str:
            """Render None as an empty cell and everything else as text."""
            if value is None:
                return ""
            if isinstance(value, bool):
                return "Yes" if value else "No"
            return str(value)

        self.env.filters['format_cell'] = format_cell

    def render_export_html(
        self,
        rows: List[Dict[str, Any]],
        title: str,
        columns: Optional[List[str]] = None,
    ) -> str:
        """
        Render export rows as an HTML table document.

        Args:
            rows: Export rows (already transformed)
            title: Document title, usually the resource label
            columns: Column order; defaults to the keys of the first row

        Returns:
            HTML document as a string
        """
        template = self.env.get_template('export_table.html')
        return template.render(
            title=title,
            panel_name=ADMIN_PANEL_NAME,
            columns=columns if columns is not None else (list(rows[0].keys()) if rows else []),
            rows=rows,
            generated_at=format_datetime_string(utc_now()),
        )

    def generate_export_pdf(
        self,
        rows: List[Dict[str, Any]],
        title: str,
        columns: Optional[List[str]] = None,
    ) -> bytes:
        """
        Generate a PDF table of export rows.

        Returns:
            PDF file content as bytes

        Raises:
            Exception: If PDF generation fails
        """
        # Lazy import: WeasyPrint needs native libraries at import time
        from weasyprint import HTML  # type: ignore

        try:
            html_content = self.render_export_html(rows, title, columns)
            pdf_bytes = HTML(string=html_content).write_pdf()
            if pdf_bytes is None:
                raise RuntimeError("WeasyPrint returned no PDF content")
            return pdf_bytes
        except Exception as e:
            logger.exception(f"Error generating export PDF for {title}: {e}")
            raise
