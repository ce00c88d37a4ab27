# =============================================================================
# rental_core/models/__init__.py
# =============================================================================

from .entities import (
    Entity,
    Property,
    Tenant,
    Payment,
    Checklist,
    Task,
    Comment,
    EntitySpec,
    ENTITY_SPECS,
    PROPERTIES,
    TENANTS,
    PAYMENTS,
    CHECKLISTS,
    COMMENTS,
    PROPERTY_TYPES,
    CURRENCIES,
    PAYMENT_STATUSES,
    CURRENCY_SYMBOLS,
    new_id,
)

__all__ = [
    "Entity",
    "Property",
    "Tenant",
    "Payment",
    "Checklist",
    "Task",
    "Comment",
    "EntitySpec",
    "ENTITY_SPECS",
    "PROPERTIES",
    "TENANTS",
    "PAYMENTS",
    "CHECKLISTS",
    "COMMENTS",
    "PROPERTY_TYPES",
    "CURRENCIES",
    "PAYMENT_STATUSES",
    "CURRENCY_SYMBOLS",
    "new_id",
]
