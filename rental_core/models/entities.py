# =============================================================================
# rental_core/models/entities.py
# Entity Definitions for Rental Manager
# =============================================================================
"""
The five entity kinds managed by the data layer.

Field names are snake_case and double as Supabase column names and as the
JSON keys in local snapshots. Dates are ISO-8601 strings ("YYYY-MM-DD"),
timestamps are UTC ISO-8601 strings.
"""

from __future__ import annotations
import dataclasses
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from rental_core.errors import DataValidationError


PROPERTY_TYPES = ("apartment", "house", "studio", "condo", "townhouse")
CURRENCIES = ("USD", "EUR", "EGP")
PAYMENT_STATUSES = ("pending", "paid", "overdue")

CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "EGP": "E£"}

# Assigned once at creation, never overwritten by update()
IMMUTABLE_FIELDS = ("id", "user_id", "created_at")


def new_id() -> str:
    """Time-ordered identifier with a random suffix to avoid same-tick collisions."""
    return f"{time.time_ns():x}-{uuid.uuid4().hex[:8]}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def _to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(float(value))


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "1", "yes"):
            return True
        if text in ("false", "0", "no", ""):
            return False
    return bool(value)


@dataclass
class Entity:
    """Common fields and record conversion shared by all entity kinds."""
    id: Optional[str] = None
    created_at: Optional[str] = None
    user_id: Optional[str] = None

    # Field name -> coercion function, applied in from_record()
    COERCE: ClassVar[Dict[str, Any]] = {}

    @classmethod
    def field_names(cls) -> Tuple[str, ...]:
        return tuple(f.name for f in dataclasses.fields(cls))

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> Entity:
        """
        Build an entity from a stored record.

        Unknown keys (server-side columns) are ignored, missing keys take
        their defaults.
        """
        names = cls.field_names()
        values = {k: v for k, v in record.items() if k in names}
        for name, coerce in cls.COERCE.items():
            if name in values:
                values[name] = coerce(values[name])
        return cls(**values)

    def to_record(self) -> Dict[str, Any]:
        """JSON-ready dict of all fields."""
        return dataclasses.asdict(self)

    def merged(self, partial: Dict[str, Any]) -> Entity:
        """Shallow merge: fields named in partial win, everything else is kept."""
        record = self.to_record()
        for key, value in partial.items():
            if key in IMMUTABLE_FIELDS:
                continue
            record[key] = to_plain(value)
        return type(self).from_record(record)

    def validate(self) -> None:
        """Raise DataValidationError if the entity is not storable."""

    # -- validation helpers --------------------------------------------------

    def _require_choice(self, name: str, choices: Tuple[str, ...]) -> None:
        value = getattr(self, name)
        if value not in choices:
            raise DataValidationError(
                f"Invalid {name}: {value!r}",
                field=name,
                expected=" | ".join(choices),
                actual=value,
            )

    def _require_non_negative(self, name: str) -> None:
        value = getattr(self, name)
        if value is not None and value < 0:
            raise DataValidationError(
                f"{name} must not be negative",
                field=name,
                expected=">= 0",
                actual=value,
            )


def to_plain(value: Any) -> Any:
    """Convert nested dataclasses (e.g. Task lists) to plain dicts."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, list):
        return [to_plain(v) for v in value]
    return value


# =============================================================================
# PROPERTY
# =============================================================================

@dataclass
class Property(Entity):
    name: str = ""
    location: str = ""
    city: str = ""
    address: str = ""
    type: str = "apartment"
    bedrooms: int = 0
    bathrooms: float = 0.0
    rent: float = 0.0
    currency: str = "USD"
    description: str = ""

    COERCE: ClassVar[Dict[str, Any]] = {
        "bedrooms": _to_int,
        "bathrooms": _to_float,
        "rent": _to_float,
    }

    def validate(self) -> None:
        if not self.name:
            raise DataValidationError("Property name is required", field="name")
        self._require_choice("type", PROPERTY_TYPES)
        self._require_choice("currency", CURRENCIES)
        self._require_non_negative("bedrooms")
        self._require_non_negative("bathrooms")
        self._require_non_negative("rent")
        # Half-steps only (1, 1.5, 2, ...)
        if self.bathrooms is not None and (self.bathrooms * 2) % 1 != 0:
            raise DataValidationError(
                "Bathrooms must be a multiple of 0.5",
                field="bathrooms",
                expected="multiple of 0.5",
                actual=self.bathrooms,
            )


# =============================================================================
# TENANT
# =============================================================================

@dataclass
class Tenant(Entity):
    full_name: str = ""
    email: str = ""
    phone: str = ""
    property_id: Optional[str] = None
    lease_start: Optional[str] = None
    lease_end: Optional[str] = None
    door_code: Optional[str] = None
    special_requests: Optional[str] = None

    def validate(self) -> None:
        if not self.full_name:
            raise DataValidationError("Tenant name is required", field="full_name")


# =============================================================================
# PAYMENT
# =============================================================================

@dataclass
class Payment(Entity):
    property_id: Optional[str] = None
    tenant_id: Optional[str] = None
    amount: float = 0.0
    currency: str = "USD"
    due_date: Optional[str] = None
    status: str = "pending"
    notes: Optional[str] = None

    COERCE: ClassVar[Dict[str, Any]] = {"amount": _to_float}

    def validate(self) -> None:
        self._require_non_negative("amount")
        self._require_choice("currency", CURRENCIES)
        self._require_choice("status", PAYMENT_STATUSES)


# =============================================================================
# CHECKLIST
# =============================================================================

@dataclass
class Task:
    id: str = field(default_factory=new_id)
    text: str = ""
    completed: bool = False


def _to_tasks(value: Any) -> List[Task]:
    tasks = []
    for item in value or []:
        if isinstance(item, Task):
            tasks.append(item)
        else:
            tasks.append(Task(
                id=str(item.get("id") or new_id()),
                text=item.get("text", ""),
                completed=bool(item.get("completed", False)),
            ))
    return tasks


@dataclass
class Checklist(Entity):
    name: str = ""
    property_id: Optional[str] = None
    is_template: bool = False
    tasks: List[Task] = field(default_factory=list)

    COERCE: ClassVar[Dict[str, Any]] = {"tasks": _to_tasks, "is_template": _to_bool}

    def validate(self) -> None:
        if not self.name:
            raise DataValidationError("Checklist name is required", field="name")


# =============================================================================
# COMMENT
# =============================================================================

@dataclass
class Comment(Entity):
    tenant_id: Optional[str] = None
    property_id: Optional[str] = None
    text: str = ""

    def validate(self) -> None:
        if not self.text:
            raise DataValidationError("Comment text is required", field="text")


# =============================================================================
# ENTITY REGISTRY
# =============================================================================

@dataclass(frozen=True)
class EntitySpec:
    """Storage configuration for one entity kind."""
    kind: str
    entity_cls: type
    table: str       # Supabase table
    local_key: str   # Local store key (before user namespacing)


PROPERTIES = EntitySpec("properties", Property, "properties_rm2024", "rental-properties")
TENANTS = EntitySpec("tenants", Tenant, "tenants_rm2024", "rental-tenants")
PAYMENTS = EntitySpec("payments", Payment, "payments_rm2024", "rental-payments")
CHECKLISTS = EntitySpec("checklists", Checklist, "checklists_rm2024", "rental-checklists")
COMMENTS = EntitySpec("comments", Comment, "comments_rm2024", "rental-comments")

ENTITY_SPECS = (PROPERTIES, TENANTS, PAYMENTS, CHECKLISTS, COMMENTS)
