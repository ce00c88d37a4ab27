# =============================================================================
# tests/unit/test_kpi_service.py
# Unit Tests for KPIService
# =============================================================================

from datetime import date

import pytest

from rental_core.models import Payment, Property, Tenant
from rental_core.services import KPIService
from rental_core.services.kpi_service import parse_date, to_period


@pytest.fixture
def kpis(local_service):
    return KPIService(local_service)


@pytest.fixture
def march_payments(local_service, sample_property, sample_tenant):
    """One paid and one overdue USD payment due 2024-03-05, plus noise"""
    prop = local_service.properties.add(sample_property)
    tenant = local_service.tenants.add(sample_tenant)
    base = dict(property_id=prop.id, tenant_id=tenant.id, due_date="2024-03-05")

    local_service.payments.add(Payment(amount=500, currency="USD", status="paid", **base))
    local_service.payments.add(Payment(amount=500, currency="USD", status="overdue", **base))
    local_service.payments.add(Payment(amount=700, currency="EUR", status="paid", **base))
    local_service.payments.add(Payment(
        amount=300, currency="USD", status="paid",
        property_id=prop.id, tenant_id=tenant.id, due_date="2024-02-28",
    ))
    return prop, tenant


class TestHelpers:
    """Test month and date parsing"""

    def test_to_period_accepts_strings_and_dates(self):
        assert to_period("2024-03") == to_period(date(2024, 3, 17))
        assert str(to_period("2024-03")) == "2024-03"

    def test_parse_date(self):
        assert parse_date("2024-03-10") == date(2024, 3, 10)
        assert parse_date("") is None
        assert parse_date("not a date") is None


class TestIncome:
    """Test payment aggregation"""

    def test_income_counts_only_paid(self, kpis, march_payments):
        assert kpis.monthly_income("2024-03", "USD") == 500.0
        assert kpis.overdue_total("2024-03", "USD") == 500.0

    def test_income_filtered_by_currency_and_month(self, kpis, march_payments):
        assert kpis.monthly_income("2024-03", "EUR") == 700.0
        assert kpis.monthly_income("2024-02", "USD") == 300.0
        assert kpis.monthly_income("2024-04", "USD") == 0.0

    def test_no_payments(self, kpis):
        assert kpis.monthly_income("2024-03", "USD") == 0.0
        assert kpis.payment_status_overview("USD") == {"paid": 0, "pending": 0, "overdue": 0}

    def test_payment_status_overview(self, kpis, march_payments):
        assert kpis.payment_status_overview("USD") == {"paid": 2, "pending": 0, "overdue": 1}

    def test_income_trend(self, kpis, march_payments):
        trend = kpis.income_trend("USD", months=6, today=date(2024, 3, 20))

        assert list(trend["month"]) == [
            "Oct 2023", "Nov 2023", "Dec 2023", "Jan 2024", "Feb 2024", "Mar 2024",
        ]
        assert list(trend["income"]) == [0.0, 0.0, 0.0, 0.0, 300.0, 500.0]


class TestOccupancy:
    """Test active tenants and occupancy rate"""

    def test_active_tenants_by_lease_end(self, kpis, local_service, sample_tenant):
        local_service.tenants.add(sample_tenant)

        assert len(kpis.active_tenants(date(2024, 6, 1))) == 1
        assert kpis.active_tenants(date(2025, 1, 1)) == []

    def test_occupancy_rate(self, kpis, local_service, sample_property, sample_tenant):
        local_service.properties.add(sample_property)
        local_service.properties.add(Property(name="Garden House", type="house"))
        local_service.tenants.add(sample_tenant)

        assert kpis.occupancy_rate(date(2024, 6, 1)) == 50.0

    def test_occupancy_without_properties(self, kpis):
        assert kpis.occupancy_rate() == 0.0

    def test_dashboard_summary(self, kpis, march_payments):
        summary = kpis.dashboard_summary("2024-03", "USD", today=date(2024, 6, 1))

        assert summary.month_label == "March 2024"
        assert summary.currency_symbol == "$"
        assert summary.total_properties == 1
        assert summary.active_tenants == 1
        assert summary.occupancy_rate == 100.0
        assert summary.monthly_income == 500.0
        assert summary.overdue_amount == 500.0


class TestCalendar:
    """Test the per-day occupancy calendar"""

    @pytest.fixture
    def leased(self, local_service, sample_property, sample_tenant):
        prop = local_service.properties.add(sample_property)
        sample_tenant.property_id = prop.id
        local_service.tenants.add(sample_tenant)
        return prop

    def test_lease_bounds_are_inclusive(self, kpis, leased):
        calendar = kpis.calendar_occupancy("2024-03")

        assert calendar.month_label == "March 2024"
        assert len(calendar.days) == 31
        assert calendar.occupied_days == 22
        assert calendar.vacant_days == 9
        assert calendar.occupancy_pct == 71
        assert calendar.days[8].status == "vacant"
        assert calendar.days[9].status == "occupied"
        assert calendar.days[9].tenants == ["Ana Ruiz"]

    def test_lease_end_day_is_occupied(self, kpis, leased):
        calendar = kpis.calendar_occupancy("2024-12")

        assert calendar.days[-1].status == "occupied"
        assert calendar.occupancy_pct == 100

    def test_location_filter(self, kpis, leased):
        assert kpis.calendar_occupancy("2024-03", location="down").occupied_days == 22
        assert kpis.calendar_occupancy("2024-03", location="Uptown").occupied_days == 0

    def test_property_filter(self, kpis, leased):
        assert kpis.calendar_occupancy("2024-03", property_id=leased.id).occupied_days == 22
        assert kpis.calendar_occupancy("2024-03", property_id="other").occupancy_pct == 0

    def test_locations(self, kpis, local_service, leased):
        local_service.properties.add(Property(name="Loft", location="Uptown"))
        local_service.properties.add(Property(name="Annex", location="Downtown"))

        assert kpis.locations() == ["Downtown", "Uptown"]

    def test_tenant_without_lease_dates_ignored(self, kpis, local_service):
        local_service.tenants.add(Tenant(full_name="No Dates"))

        assert kpis.calendar_occupancy("2024-03").occupied_days == 0
