"""
KPI Service - Calculate Rental Manager dashboard metrics.

Pure read-only computations over the in-memory collections: occupancy,
monthly income, payment status overview, income trend and the per-day
occupancy calendar. Payment status is taken as stored; nothing here marks
payments overdue.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Union

import pandas as pd

from rental_core.models.entities import CURRENCY_SYMBOLS, PAYMENT_STATUSES, Tenant
from rental_core.services.base_service import BaseService

# A month is given as "YYYY-MM", any date inside it, or a pandas Period
MonthLike = Union[str, date, datetime, pd.Period]

PAYMENT_COLUMNS = ["id", "property_id", "tenant_id", "amount", "currency", "due_date", "status"]


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class DashboardSummary:
    """Container for the dashboard headline numbers."""

    currency: str = "USD"
    currency_symbol: str = "$"
    month_label: str = ""

    total_properties: int = 0
    total_tenants: int = 0
    active_tenants: int = 0
    occupancy_rate: float = 0.0       # Active tenants / properties, percent

    monthly_income: float = 0.0       # Paid, selected month and currency
    overdue_amount: float = 0.0       # Overdue, selected month and currency

    # Counts across all months for the selected currency
    payment_status: Dict[str, int] = field(default_factory=dict)


@dataclass
class DayOccupancy:
    """One calendar day."""
    day: date
    status: str                       # "occupied" | "vacant"
    tenants: List[str] = field(default_factory=list)


@dataclass
class CalendarMonth:
    """Occupancy calendar for one month."""
    month_label: str
    days: List[DayOccupancy] = field(default_factory=list)
    occupied_days: int = 0
    vacant_days: int = 0
    occupancy_pct: int = 0


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def to_period(month: MonthLike) -> pd.Period:
    """Normalize a month argument to a monthly pandas Period."""
    if isinstance(month, pd.Period):
        return month.asfreq("M")
    return pd.Period(month, freq="M")


def parse_date(value: Optional[str]) -> Optional[date]:
    """ISO date string -> date; None for missing or unparseable values."""
    if not value:
        return None
    parsed = pd.to_datetime(value, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def _today(today: Optional[date]) -> date:
    return today or date.today()


# =============================================================================
# SERVICE
# =============================================================================

class KPIService(BaseService):
    """
    Usage:
        kpis = KPIService(get_data_service())
        summary = kpis.dashboard_summary("2024-03", "USD")
        st.metric("Monthly Income", f"{summary.currency_symbol}{summary.monthly_income:,.0f}")
    """

    # -------------------------------------------------------------------------
    # Frames
    # -------------------------------------------------------------------------

    def payments_frame(self) -> pd.DataFrame:
        """Payments as a DataFrame with parsed due dates and numeric amounts."""
        df = pd.DataFrame(self.data.payments.records(), columns=PAYMENT_COLUMNS)
        df["due_date"] = pd.to_datetime(df["due_date"], errors="coerce")
        df["amount"] = pd.to_numeric(df["amount"], errors="coerce").fillna(0.0)
        return df

    @staticmethod
    def _in_month(df: pd.DataFrame, period: pd.Period) -> pd.Series:
        if df.empty:
            return pd.Series(dtype=bool, index=df.index)
        return df["due_date"].dt.to_period("M") == period

    def _sum_payments(self, month: MonthLike, currency: str, status: str) -> float:
        df = self.payments_frame()
        mask = (
            self._in_month(df, to_period(month))
            & (df["currency"] == currency)
            & (df["status"] == status)
        )
        return float(df.loc[mask, "amount"].sum())

    # -------------------------------------------------------------------------
    # Occupancy
    # -------------------------------------------------------------------------

    def active_tenants(self, today: Optional[date] = None) -> List[Tenant]:
        """Tenants whose lease ends after today."""
        today = _today(today)
        active = []
        for tenant in self.data.tenants.all():
            lease_end = parse_date(tenant.lease_end)
            if lease_end is not None and lease_end > today:
                active.append(tenant)
        return active

    def occupancy_rate(self, today: Optional[date] = None) -> float:
        """Active tenants per property, as a percentage (0 with no properties)."""
        total = len(self.data.properties)
        if total == 0:
            return 0.0
        return len(self.active_tenants(today)) / total * 100

    # -------------------------------------------------------------------------
    # Income
    # -------------------------------------------------------------------------

    def monthly_income(self, month: MonthLike, currency: str) -> float:
        """Sum of paid payments due in month, in currency."""
        return self._sum_payments(month, currency, "paid")

    def overdue_total(self, month: MonthLike, currency: str) -> float:
        """Sum of overdue payments due in month, in currency."""
        return self._sum_payments(month, currency, "overdue")

    def payment_status_overview(self, currency: str) -> Dict[str, int]:
        """Payment counts per status across all months."""
        df = self.payments_frame()
        counts = df.loc[df["currency"] == currency, "status"].value_counts()
        return {status: int(counts.get(status, 0)) for status in PAYMENT_STATUSES}

    def income_trend(
        self,
        currency: str,
        months: int = 6,
        today: Optional[date] = None,
    ) -> pd.DataFrame:
        """
        Paid income for the last N months, oldest first.

        Returns:
            DataFrame with columns ["month", "income"] ("Mar 2024", 1500.0)
        """
        df = self.payments_frame()
        paid = df[(df["currency"] == currency) & (df["status"] == "paid")].dropna(subset=["due_date"])
        by_month = paid.groupby(paid["due_date"].dt.to_period("M"))["amount"].sum()

        current = to_period(_today(today))
        rows = []
        for offset in range(months - 1, -1, -1):
            period = current - offset
            rows.append({
                "month": period.strftime("%b %Y"),
                "income": float(by_month.get(period, 0.0)),
            })
        return pd.DataFrame(rows, columns=["month", "income"])

    # -------------------------------------------------------------------------
    # Summary
    # -------------------------------------------------------------------------

    def dashboard_summary(
        self,
        month: MonthLike,
        currency: str,
        today: Optional[date] = None,
    ) -> DashboardSummary:
        period = to_period(month)
        return DashboardSummary(
            currency=currency,
            currency_symbol=CURRENCY_SYMBOLS.get(currency, ""),
            month_label=period.strftime("%B %Y"),
            total_properties=len(self.data.properties),
            total_tenants=len(self.data.tenants),
            active_tenants=len(self.active_tenants(today)),
            occupancy_rate=self.occupancy_rate(today),
            monthly_income=self.monthly_income(period, currency),
            overdue_amount=self.overdue_total(period, currency),
            payment_status=self.payment_status_overview(currency),
        )

    # -------------------------------------------------------------------------
    # Calendar
    # -------------------------------------------------------------------------

    def calendar_occupancy(
        self,
        month: MonthLike,
        property_id: Optional[str] = None,
        location: Optional[str] = None,
    ) -> CalendarMonth:
        """
        Per-day occupancy for one month.

        A day is occupied when it falls within any lease (both ends
        inclusive) of the tenants left after filtering by property and by
        case-insensitive location substring.
        """
        period = to_period(month)

        tenants = self.data.tenants.all()
        if property_id:
            tenants = [t for t in tenants if t.property_id == property_id]
        if location:
            needle = location.lower()
            property_ids = {
                p.id for p in self.data.properties.all()
                if needle in (p.location or "").lower()
            }
            tenants = [t for t in tenants if t.property_id in property_ids]

        leases = []
        for tenant in tenants:
            start, end = parse_date(tenant.lease_start), parse_date(tenant.lease_end)
            if start is None or end is None:
                continue
            leases.append((start, end, tenant.full_name))

        calendar = CalendarMonth(month_label=period.strftime("%B %Y"))
        for stamp in pd.date_range(period.start_time, period.end_time.normalize(), freq="D"):
            day = stamp.date()
            names = [name for start, end, name in leases if start <= day <= end]
            calendar.days.append(DayOccupancy(
                day=day,
                status="occupied" if names else "vacant",
                tenants=names,
            ))

        calendar.occupied_days = sum(1 for d in calendar.days if d.status == "occupied")
        calendar.vacant_days = len(calendar.days) - calendar.occupied_days
        if calendar.days:
            calendar.occupancy_pct = round(calendar.occupied_days / len(calendar.days) * 100)
        return calendar

    def locations(self) -> List[str]:
        """Distinct property locations, in first-seen order (calendar filter)."""
        seen = []
        for prop in self.data.properties.all():
            if prop.location and prop.location not in seen:
                seen.append(prop.location)
        return seen
