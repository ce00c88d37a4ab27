"""
Report Service - monthly PDF and Excel reports.

Reads the in-memory collections only; nothing is mutated and nothing goes
over the network. Payments are limited to the selected month and currency,
comments to the selected month; properties and tenants are listed in full.
"""

from __future__ import annotations
import io
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

import pandas as pd
from fpdf import FPDF
from fpdf.enums import XPos, YPos

from rental_core.errors import DataValidationError
from rental_core.models.entities import CURRENCY_SYMBOLS
from rental_core.services.base_service import BaseService, ServiceResult
from rental_core.services.kpi_service import KPIService, MonthLike, to_period, parse_date

REPORT_TITLE = "Property Rental Report"

PAYMENT_SHEET_COLUMNS = ["Property", "Tenant", "Amount", "Currency", "Due Date", "Status", "Notes"]
PROPERTY_SHEET_COLUMNS = ["Name", "Location", "City", "Type", "Bedrooms", "Bathrooms", "Monthly Rent", "Currency"]
TENANT_SHEET_COLUMNS = ["Name", "Email", "Phone", "Property", "Lease Start", "Lease End", "Door Code", "Special Requests"]
COMMENT_SHEET_COLUMNS = ["Date", "Tenant", "Property", "Comment"]

# Table header fill (sky blue)
HEADER_FILL = (14, 165, 233)

EXPORT_FORMATS = {
    "pdf": "application/pdf",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


@dataclass
class ReportFile:
    """A rendered report ready for st.download_button."""
    filename: str
    content: bytes
    mime: str


@dataclass
class ReportData:
    """Everything a report file shows, already resolved to display values."""
    period: pd.Period
    currency: str
    generated: date

    total_properties: int = 0
    active_tenants: int = 0
    occupancy_rate: float = 0.0
    monthly_income: float = 0.0
    overdue_amount: float = 0.0

    payments: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=PAYMENT_SHEET_COLUMNS))
    properties: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=PROPERTY_SHEET_COLUMNS))
    tenants: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=TENANT_SHEET_COLUMNS))
    comments: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=COMMENT_SHEET_COLUMNS))

    @property
    def month_label(self) -> str:
        return self.period.strftime("%B %Y")

    @property
    def currency_symbol(self) -> str:
        return CURRENCY_SYMBOLS.get(self.currency, "")

    def summary_lines(self, symbol: Optional[str] = None) -> List[tuple]:
        """(label, value) pairs of the summary block."""
        prefix = self.currency_symbol if symbol is None else symbol
        return [
            ("Total Properties", self.total_properties),
            ("Active Tenants", self.active_tenants),
            ("Occupancy Rate", f"{self.occupancy_rate:.1f}%"),
            ("Monthly Income", f"{prefix}{self.monthly_income:,.2f}"),
            ("Overdue Amount", f"{prefix}{self.overdue_amount:,.2f}"),
        ]


def _latin1(value) -> str:
    """Core PDF fonts are latin-1 only; replace anything else."""
    text = "" if value is None else str(value)
    return text.encode("latin-1", "replace").decode("latin-1")


class ReportService(BaseService):
    """
    Usage:
        reports = ReportService(get_data_service())
        result = reports.export("2024-03", "USD", "pdf")
        if result:
            st.download_button("Download PDF", result.data.content, result.data.filename, result.data.mime)
        else:
            st.error(result.error)
    """

    def __init__(self, data):
        super().__init__(data)
        self.kpis = KPIService(data)

    # =========================================================================
    # BUILD
    # =========================================================================

    def build(self, month: MonthLike, currency: str, today: Optional[date] = None) -> ReportData:
        """Collect and resolve the report contents for one month and currency."""
        period = to_period(month)
        today = today or date.today()

        report = ReportData(period=period, currency=currency, generated=today)
        report.total_properties = len(self.data.properties)
        report.active_tenants = len(self.kpis.active_tenants(today))
        report.occupancy_rate = self.kpis.occupancy_rate(today)
        report.monthly_income = self.kpis.monthly_income(period, currency)
        report.overdue_amount = self.kpis.overdue_total(period, currency)

        self._update_progress(25, "Payments")
        report.payments = self._payment_rows(period, currency)
        self._update_progress(50, "Properties and tenants")
        report.properties = self._property_rows()
        report.tenants = self._tenant_rows()
        self._update_progress(75, "Comments")
        report.comments = self._comment_rows(period)
        self._update_progress(100, "Done")

        self.logger.info(
            f"Built {report.month_label} {currency} report: "
            f"{len(report.payments)} payments, {len(report.comments)} comments"
        )
        return report

    def _payment_rows(self, period: pd.Period, currency: str) -> pd.DataFrame:
        rows = []
        for payment in self.data.payments.all():
            due = parse_date(payment.due_date)
            if due is None or pd.Period(due, freq="M") != period or payment.currency != currency:
                continue
            rows.append([
                self.property_name(payment.property_id),
                self.tenant_name(payment.tenant_id),
                payment.amount,
                payment.currency,
                due.isoformat(),
                payment.status,
                payment.notes or "",
            ])
        return pd.DataFrame(rows, columns=PAYMENT_SHEET_COLUMNS)

    def _property_rows(self) -> pd.DataFrame:
        rows = [
            [p.name, p.location, p.city, p.type, p.bedrooms, p.bathrooms, p.rent, p.currency]
            for p in self.data.properties.all()
        ]
        return pd.DataFrame(rows, columns=PROPERTY_SHEET_COLUMNS)

    def _tenant_rows(self) -> pd.DataFrame:
        rows = [
            [
                t.full_name,
                t.email,
                t.phone,
                self.property_name(t.property_id),
                t.lease_start,
                t.lease_end,
                t.door_code or "",
                t.special_requests or "",
            ]
            for t in self.data.tenants.all()
        ]
        return pd.DataFrame(rows, columns=TENANT_SHEET_COLUMNS)

    def _comment_rows(self, period: pd.Period) -> pd.DataFrame:
        rows = []
        for comment in self.data.comments.all():
            created = parse_date(comment.created_at)
            if created is None or pd.Period(created, freq="M") != period:
                continue
            rows.append([
                created.isoformat(),
                self.tenant_name(comment.tenant_id),
                self.property_name(comment.property_id),
                comment.text,
            ])
        return pd.DataFrame(rows, columns=COMMENT_SHEET_COLUMNS)

    # =========================================================================
    # EXPORT
    # =========================================================================

    def export(
        self,
        month: MonthLike,
        currency: str,
        fmt: str,
        today: Optional[date] = None,
    ) -> ServiceResult:
        """
        Build and render one report file.

        Returns:
            ServiceResult whose data is a ReportFile
        """
        return self.safe_execute(
            f"Exporting {fmt} report for {month} {currency}",
            self._export,
            month,
            currency,
            fmt,
            today,
        )

    def _export(self, month: MonthLike, currency: str, fmt: str, today: Optional[date]) -> ReportFile:
        fmt = fmt.lower()
        if fmt not in EXPORT_FORMATS:
            raise DataValidationError(
                f"Unsupported report format: {fmt}",
                field="format",
                expected=" or ".join(EXPORT_FORMATS),
                actual=fmt,
            )

        report = self.build(month, currency, today)
        content = self.to_pdf(report) if fmt == "pdf" else self.to_excel(report)
        return ReportFile(
            filename=self.filename(report.period, fmt),
            content=content,
            mime=EXPORT_FORMATS[fmt],
        )

    @staticmethod
    def filename(month: MonthLike, ext: str) -> str:
        return f"property-report-{to_period(month).strftime('%Y-%m')}.{ext}"

    def to_excel(self, report: ReportData) -> bytes:
        """
        Multi-sheet workbook: Summary, then Payments, Properties, Tenants and
        Comments (each only when it has rows).
        """
        summary = [
            [REPORT_TITLE, None],
            [f"Period: {report.month_label}", None],
            [f"Currency: {report.currency}", None],
            [f"Generated: {report.generated.strftime('%b %d, %Y')}", None],
            [None, None],
            ["SUMMARY", None],
            *[[label, value] for label, value in report.summary_lines()],
        ]

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            pd.DataFrame(summary).to_excel(writer, sheet_name="Summary", index=False, header=False)
            for sheet_name, frame in (
                ("Payments", report.payments),
                ("Properties", report.properties),
                ("Tenants", report.tenants),
                ("Comments", report.comments),
            ):
                if not frame.empty:
                    frame.to_excel(writer, sheet_name=sheet_name, index=False)
        return buffer.getvalue()

    def to_pdf(self, report: ReportData) -> bytes:
        """Title block, summary, payments table and comments table."""
        pdf = FPDF()
        pdf.add_page()

        pdf.set_font("Helvetica", "B", 20)
        pdf.cell(0, 12, REPORT_TITLE, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_font("Helvetica", "", 12)
        for line in (
            f"Period: {report.month_label}",
            f"Currency: {report.currency}",
            f"Generated: {report.generated.strftime('%b %d, %Y')}",
        ):
            pdf.cell(0, 8, line, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.ln(6)

        pdf.set_font("Helvetica", "B", 16)
        pdf.cell(0, 10, "Summary", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_font("Helvetica", "", 12)
        for label, value in report.summary_lines(symbol=f"{report.currency} "):
            pdf.cell(0, 8, _latin1(f"{label}: {value}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.ln(6)

        if not report.payments.empty:
            rows = [
                [
                    row["Property"],
                    row["Tenant"],
                    f"{row['Amount'] or 0:,.2f}",
                    pd.Timestamp(row["Due Date"]).strftime("%b %d"),
                    str(row["Status"]).capitalize(),
                ]
                for _, row in report.payments.iterrows()
            ]
            self._pdf_table(
                pdf,
                ["Property", "Tenant", "Amount", "Due Date", "Status"],
                rows,
                [50, 50, 30, 30, 30],
            )
            pdf.ln(8)

        if not report.comments.empty:
            pdf.set_font("Helvetica", "B", 16)
            pdf.cell(0, 10, "Comments & Notes", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            rows = [
                [row["Tenant"], pd.Timestamp(row["Date"]).strftime("%b %d"), row["Comment"]]
                for _, row in report.comments.iterrows()
            ]
            self._pdf_table(pdf, ["Tenant", "Date", "Comment"], rows, [50, 25, 115])

        return bytes(pdf.output())

    @staticmethod
    def _pdf_table(pdf: FPDF, headers: List[str], rows: List[list], widths: List[int]) -> None:
        pdf.set_font("Helvetica", "B", 8)
        pdf.set_fill_color(*HEADER_FILL)
        pdf.set_text_color(255, 255, 255)
        for width, header in zip(widths, headers):
            pdf.cell(width, 7, header, border=1, fill=True)
        pdf.ln()

        pdf.set_font("Helvetica", "", 8)
        pdf.set_text_color(0, 0, 0)
        for row in rows:
            for width, value in zip(widths, row):
                # Clip to the column; long comments are cut, not wrapped
                text = _latin1(value)
                while text and pdf.get_string_width(text) > width - 2:
                    text = text[:-1]
                pdf.cell(width, 6, text, border=1)
            pdf.ln()
