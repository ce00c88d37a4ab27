# =============================================================================
# tests/unit/test_entities.py
# Unit Tests for Entity Records and Validation
# =============================================================================

import pytest

from rental_core.errors import DataValidationError
from rental_core.models import Checklist, Payment, Property, Task, Tenant, new_id


class TestRecordConversion:
    """Test to_record / from_record"""

    def test_from_record_ignores_unknown_columns(self):
        """Server-side columns that are not entity fields are dropped"""
        prop = Property.from_record({"id": "p1", "name": "Loft", "inserted_by": "trigger"})

        assert prop.id == "p1"
        assert prop.name == "Loft"
        assert not hasattr(prop, "inserted_by")

    def test_from_record_coerces_numbers(self):
        """Numeric strings from storage become numbers"""
        prop = Property.from_record({"name": "Loft", "bedrooms": "3", "bathrooms": "1.5", "rent": "950"})

        assert prop.bedrooms == 3
        assert prop.bathrooms == 1.5
        assert prop.rent == 950.0

    def test_checklist_tasks_round_trip_as_dicts(self):
        """Tasks are stored as plain dicts and come back as Task objects"""
        checklist = Checklist(name="Move-out", tasks=[Task(id="t1", text="Keys")])

        record = checklist.to_record()
        assert record["tasks"] == [{"id": "t1", "text": "Keys", "completed": False}]

        restored = Checklist.from_record(record)
        assert restored.tasks == [Task(id="t1", text="Keys", completed=False)]

    @pytest.mark.parametrize("raw, expected", [
        ("false", False),
        ("False", False),
        ("0", False),
        ("", False),
        ("true", True),
        ("yes", True),
        (1, True),
        (False, False),
    ])
    def test_checklist_template_flag_from_text(self, raw, expected):
        """Template flags stored as text are read as booleans"""
        checklist = Checklist.from_record({"name": "Move-in", "is_template": raw})

        assert checklist.is_template is expected

    def test_merged_keeps_unnamed_fields(self):
        """Shallow merge overwrites named fields only"""
        tenant = Tenant(id="t1", full_name="Ana", email="ana@example.com", phone="123")

        merged = tenant.merged({"phone": "456"})

        assert merged.phone == "456"
        assert merged.full_name == "Ana"
        assert merged.email == "ana@example.com"

    def test_merged_ignores_immutable_fields(self):
        """id, user_id and created_at cannot be changed by a merge"""
        tenant = Tenant(id="t1", full_name="Ana", created_at="2024-01-01T00:00:00+00:00", user_id="u1")

        merged = tenant.merged({"id": "t2", "user_id": "u2", "created_at": "later"})

        assert merged.id == "t1"
        assert merged.user_id == "u1"
        assert merged.created_at == "2024-01-01T00:00:00+00:00"

    def test_new_ids_are_unique(self):
        """Ids generated in a tight loop never collide"""
        ids = {new_id() for _ in range(1000)}
        assert len(ids) == 1000


class TestValidation:
    """Test entity validation rules"""

    def test_property_rejects_unknown_type(self):
        with pytest.raises(DataValidationError) as exc_info:
            Property(name="Loft", type="castle").validate()

        assert exc_info.value.code == "DATA_001"
        assert exc_info.value.details["field"] == "type"

    def test_property_rejects_negative_rent(self):
        with pytest.raises(DataValidationError):
            Property(name="Loft", rent=-1).validate()

    def test_property_allows_half_bathrooms(self):
        Property(name="Loft", bathrooms=2.5).validate()

    def test_property_rejects_quarter_bathrooms(self):
        with pytest.raises(DataValidationError):
            Property(name="Loft", bathrooms=1.25).validate()

    def test_payment_rejects_unknown_status(self):
        with pytest.raises(DataValidationError):
            Payment(amount=100, status="late").validate()

    def test_payment_rejects_unknown_currency(self):
        with pytest.raises(DataValidationError):
            Payment(amount=100, currency="GBP").validate()

    def test_tenant_lease_order_not_enforced(self):
        """lease_start after lease_end is accepted"""
        Tenant(full_name="Ana", lease_start="2024-12-01", lease_end="2024-01-01").validate()
