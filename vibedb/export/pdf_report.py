"""PDF report generator — ReportLab data dictionary.

Generates an A4 PDF with:
  Cover, Overview, one column table per schema table, Relationships,
  Audit findings.

Reference: DESIGN.md — Schema Exporters.
"""

from __future__ import annotations

from datetime import datetime
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import (
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from vibedb.constants import APP_NAME, APP_VERSION, DEFAULT_NAMING_CONVENTION
from vibedb.core.schema_audit import audit_schema
from vibedb.models.audit import AuditReport, Severity
from vibedb.models.schema import Schema
from vibedb.models.schema import Table as SchemaTable


# Colors
_ACCENT = colors.HexColor("#0F766E")
_HEADER_BG = colors.HexColor("#1E293B")
_ERROR = colors.HexColor("#DC2626")
_WARNING = colors.HexColor("#D97706")
_GRID_LINE = colors.HexColor("#CBD5E1")
_STRIPE = colors.HexColor("#F8FAFC")

_MARGIN = 18 * mm


class SchemaReportExporter:
    """Multi-section PDF data dictionary."""

    def __init__(self):
        self._styles = getSampleStyleSheet()
        self._add_custom_styles()

    def _add_custom_styles(self) -> None:
        """Report paragraph styles (Helvetica body, monospace cells)."""
        for name, size, color, before, after in (
            ("ReportTitle", 26, _ACCENT, 0, 14),
            ("ReportMeta", 13, colors.gray, 0, 5),
            ("SectionHeading", 17, _ACCENT, 14, 8),
            ("TableHeading", 12, _HEADER_BG, 10, 4),
            ("Body", 10, colors.black, 0, 4),
        ):
            self._styles.add(ParagraphStyle(
                name=name,
                fontName="Helvetica-Bold" if name != "Body" else "Helvetica",
                fontSize=size, leading=size * 1.3,
                textColor=color, spaceBefore=before, spaceAfter=after,
            ))
        self._styles.add(ParagraphStyle(
            name="Cell",
            fontName="Helvetica", fontSize=8, leading=10,
        ))

    def generate_report(
        self,
        schema: Schema,
        output_path: str = "schema_report.pdf",
        title: str = "Schema",
        audit: AuditReport | None = None,
        convention: str = DEFAULT_NAMING_CONVENTION,
    ) -> None:
        """Build and save the PDF report.

        Args:
            schema: The schema to document.
            output_path: File path for output PDF.
            title: Design name shown on the cover.
            audit: Precomputed audit findings (None = run the local audit).
            convention: Naming convention for the local audit.
        """
        if audit is None:
            audit = audit_schema(schema, convention)

        doc = SimpleDocTemplate(
            output_path,
            pagesize=A4,
            leftMargin=_MARGIN,
            rightMargin=_MARGIN,
            topMargin=_MARGIN,
            bottomMargin=_MARGIN,
            invariant=1,
        )

        story: list = []
        story.extend(self._build_cover(schema, title))
        story.append(PageBreak())
        story.extend(self._build_overview(schema))
        for table in schema.tables:
            story.extend(self._build_table_section(table))
        story.extend(self._build_relationships(schema))
        story.extend(self._build_audit(audit))

        doc.build(story, onFirstPage=self._add_footer, onLaterPages=self._add_footer)

    def export(self, schema: Schema, output_path: str) -> None:
        self.generate_report(schema, output_path)

    # ------------------------------------------------------------------
    # Cover
    # ------------------------------------------------------------------

    def _build_cover(self, schema: Schema, title: str) -> list:
        """Page 1: Title and schema summary."""
        column_count = sum(len(t.columns) for t in schema.tables)
        return [
            Spacer(1, 60 * mm),
            Paragraph(APP_NAME, self._styles["ReportTitle"]),
            Paragraph(f"Version {APP_VERSION}", self._styles["ReportMeta"]),
            Spacer(1, 20 * mm),
            Paragraph(f"Design: <b>{escape(title)}</b>", self._styles["ReportMeta"]),
            Paragraph(f"Tables: {len(schema.tables)}", self._styles["ReportMeta"]),
            Paragraph(f"Columns: {column_count}", self._styles["ReportMeta"]),
            Paragraph(f"Relationships: {len(schema.edges())}", self._styles["ReportMeta"]),
        ]

    # ------------------------------------------------------------------
    # Overview and tables
    # ------------------------------------------------------------------

    def _build_overview(self, schema: Schema) -> list:
        story = [Paragraph("Overview", self._styles["SectionHeading"])]
        if not schema.tables:
            story.append(Paragraph("The schema has no tables.", self._styles["Body"]))
            return story
        data = [["Table", "Columns", "Primary Key", "Indexes"]]
        for table in schema.tables:
            pk = table.primary_key
            data.append([
                table.name,
                str(len(table.columns)),
                pk.name if pk else "-",
                str(len(table.indexes)),
            ])
        table = Table(data, colWidths=[60 * mm, 30 * mm, 40 * mm, 30 * mm])
        table.setStyle(self._table_style())
        story.append(table)
        return story

    def _build_table_section(self, table: SchemaTable) -> list:
        story = [Paragraph(escape(table.name), self._styles["TableHeading"])]
        if table.description:
            story.append(Paragraph(escape(table.description), self._styles["Body"]))

        cell = self._styles["Cell"]
        data = [["Column", "Type", "Constraints", "References", "Description"]]
        for col in table.columns:
            flags = [c.type.value for c in col.constraints]
            ref = f"{col.linked_table}.{col.linked_column}" if col.is_foreign_key and col.linked_table else ""
            data.append([
                col.name,
                col.type.value,
                Paragraph(escape(", ".join(flags)), cell),
                ref,
                Paragraph(escape(col.description), cell),
            ])
        grid = Table(data, colWidths=[35 * mm, 22 * mm, 33 * mm, 35 * mm, 45 * mm])
        grid.setStyle(self._table_style())
        story.append(grid)

        if table.indexes:
            story.append(Spacer(1, 2 * mm))
            for index in table.indexes:
                kind = "unique index" if index.unique else "index"
                story.append(Paragraph(
                    f"{kind} <b>{escape(index.name or '-')}</b> "
                    f"({escape(', '.join(index.columns))}) using {escape(index.type)}",
                    self._styles["Body"],
                ))
        story.append(Spacer(1, 6 * mm))
        return story

    # ------------------------------------------------------------------
    # Relationships and audit
    # ------------------------------------------------------------------

    def _build_relationships(self, schema: Schema) -> list:
        story = [
            PageBreak(),
            Paragraph("Relationships", self._styles["SectionHeading"]),
        ]
        data = [["From", "To", "Status"]]
        for table in schema.tables:
            for col in table.columns:
                if col.is_foreign_key:
                    data.append([
                        f"{table.name}.{col.name}",
                        f"{col.linked_table or '?'}.{col.linked_column}",
                        col.fk_status.value,
                    ])
        if len(data) == 1:
            story.append(Paragraph("No foreign keys defined.", self._styles["Body"]))
            return story
        grid = Table(data, colWidths=[60 * mm, 60 * mm, 40 * mm])
        grid.setStyle(self._table_style())
        story.append(grid)
        return story

    def _build_audit(self, audit: AuditReport) -> list:
        story = [Paragraph("Audit", self._styles["SectionHeading"])]
        if audit.is_clean:
            story.append(Paragraph("<b>No issues found.</b>", self._styles["Body"]))
            return story
        data = [["Severity", "Kind", "Message"]]
        for issue in audit.issues:
            data.append([
                issue.severity.value,
                issue.kind,
                Paragraph(escape(issue.message), self._styles["Cell"]),
            ])
        grid = Table(data, colWidths=[25 * mm, 25 * mm, 120 * mm])
        style = self._table_style()
        for row, issue in enumerate(audit.issues, start=1):
            color = _ERROR if issue.severity == Severity.ERROR else _WARNING
            style.add("TEXTCOLOR", (0, row), (0, row), color)
        grid.setStyle(style)
        story.append(grid)
        return story

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _table_style(self) -> TableStyle:
        """Grid style shared by every report table (column names in Courier)."""
        return TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), _HEADER_BG),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTNAME", (0, 1), (0, -1), "Courier"),
            ("FONTSIZE", (0, 0), (-1, -1), 8),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LINEBELOW", (0, 0), (-1, -1), 0.25, _GRID_LINE),
            ("BOX", (0, 0), (-1, -1), 0.5, _HEADER_BG),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, _STRIPE]),
            ("TOPPADDING", (0, 0), (-1, -1), 3),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
        ])

    @staticmethod
    def _add_footer(canvas, doc) -> None:
        """Footer: generator and date on the left, page number on the right."""
        canvas.saveState()
        canvas.setFont("Helvetica", 7)
        canvas.setFillColor(colors.gray)
        canvas.setStrokeColor(_GRID_LINE)
        canvas.line(_MARGIN, 14 * mm, A4[0] - _MARGIN, 14 * mm)
        stamp = datetime.now().strftime("%Y-%m-%d")
        canvas.drawString(_MARGIN, 10 * mm, f"{APP_NAME} {APP_VERSION} | {stamp}")
        canvas.drawRightString(A4[0] - _MARGIN, 10 * mm, str(doc.page))
        canvas.restoreState()
