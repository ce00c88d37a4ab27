# =============================================================================
# rental_core/services/checklist_service.py
# Checklist Operations (Task Toggling, Duplication, Filtering)
# =============================================================================
"""
Checklist Service - operations on checklist tasks.

Task lists live inside their parent checklist, so every task change is a
full update of the checklist. Toggles go through Repository.modify(), which
serializes mutations per checklist id: two toggles issued back-to-back on
different tasks of the same checklist are both kept.
"""

from __future__ import annotations
from typing import Iterable, List, Optional, Tuple

from rental_core.models.entities import Checklist, Task, new_id
from rental_core.services.base_service import BaseService


class ChecklistService(BaseService):
    """
    Usage:
        checklists = ChecklistService(get_data_service())
        checklist = checklists.create("Move-out", ["Check keys", "Photos"])
        checklists.toggle_task(checklist.id, checklist.tasks[0].id)
    """

    def toggle_task(self, checklist_id: str, task_id: str) -> Optional[Checklist]:
        """
        Invert one task's completed flag.

        Returns:
            Updated checklist, or None if the checklist does not exist
        """
        def flip(current: Checklist):
            tasks = [
                Task(id=t.id, text=t.text, completed=not t.completed if t.id == task_id else t.completed)
                for t in current.tasks
            ]
            return {"tasks": tasks}

        return self.data.checklists.modify(checklist_id, flip)

    def duplicate(self, checklist_id: str) -> Optional[Checklist]:
        """
        Copy a checklist as "<name> (Copy)" with fresh, uncompleted tasks.

        Returns:
            The new checklist, or None if the source does not exist
        """
        source = self.data.checklists.get(checklist_id)
        if source is None:
            return None

        copy = Checklist(
            name=f"{source.name} (Copy)",
            property_id=source.property_id,
            is_template=source.is_template,
            tasks=[Task(id=new_id(), text=t.text, completed=False) for t in source.tasks],
        )
        return self.data.checklists.add(copy)

    def create(
        self,
        name: str,
        task_texts: Iterable[str],
        property_id: Optional[str] = None,
        is_template: bool = False,
    ) -> Checklist:
        """Create a checklist; blank task texts are dropped."""
        checklist = Checklist(
            name=name,
            property_id=property_id or None,
            is_template=is_template,
            tasks=_tasks_from_texts(task_texts),
        )
        return self.data.checklists.add(checklist)

    def replace_tasks(self, checklist_id: str, task_texts: Iterable[str]) -> Optional[Checklist]:
        """Rewrite a checklist's task list from edited texts (all uncompleted)."""
        return self.data.checklists.update(checklist_id, {"tasks": _tasks_from_texts(task_texts)})

    def filter(self, search: str = "", property_id: Optional[str] = None) -> List[Checklist]:
        """Case-insensitive name search, optionally limited to one property."""
        needle = (search or "").lower()
        return [
            checklist for checklist in self.data.checklists.all()
            if needle in checklist.name.lower()
            and (not property_id or checklist.property_id == property_id)
        ]

    @staticmethod
    def progress(checklist: Checklist) -> Tuple[int, int]:
        """(completed, total) task counts."""
        return sum(1 for t in checklist.tasks if t.completed), len(checklist.tasks)

    def property_label(self, checklist: Checklist) -> str:
        if not checklist.property_id:
            return "Template"
        prop = self.data.properties.get(checklist.property_id)
        return prop.name if prop else "Unknown Property"


def _tasks_from_texts(task_texts: Iterable[str]) -> List[Task]:
    return [Task(id=new_id(), text=text) for text in task_texts if text and text.strip()]
