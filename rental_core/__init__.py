# =============================================================================
# rental_core/__init__.py
# Rental Manager - data layer (Supabase with local SQLite fallback)
# =============================================================================

__version__ = "1.0.0"
