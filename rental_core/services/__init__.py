# =============================================================================
# rental_core/services/__init__.py
# Service Layer for Rental Manager
# Separates business logic from UI presentation
# =============================================================================
"""
Service Layer for Rental Manager

Services read the data service's collections and implement page-level
operations on top of them.

Usage Example:
-------------
    from rental_core.offline import get_data_service
    from rental_core.services import ChecklistService, KPIService, ReportService

    data = get_data_service()

    # Checklist task operations
    checklists = ChecklistService(data)
    checklists.toggle_task(checklist_id, task_id)

    # Dashboard metrics
    summary = KPIService(data).dashboard_summary("2024-03", "USD")

    # Monthly report export
    reports = ReportService(data)
    result = reports.export("2024-03", "USD", "pdf")   # ServiceResult -> ReportFile
"""

from .base_service import BaseService, ServiceResult
from .checklist_service import ChecklistService
from .kpi_service import KPIService, DashboardSummary, CalendarMonth, DayOccupancy
from .report_service import ReportService, ReportData, ReportFile

__all__ = [
    # Base classes
    "BaseService",
    "ServiceResult",
    # Checklists
    "ChecklistService",
    # Dashboard metrics
    "KPIService",
    "DashboardSummary",
    "CalendarMonth",
    "DayOccupancy",
    # Reports
    "ReportService",
    "ReportData",
    "ReportFile",
]
