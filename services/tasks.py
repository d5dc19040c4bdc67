"""
Task service simulator.

Manages follow-up tasks for sales reps and publishes task events.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel

from messaging.envelope import (
    TaskAssigned,
    TaskCompleted,
    TaskCreated,
    TaskDeleted,
    TaskDueSoon,
    TaskUpdated,
)
from messaging.publisher import EventPublisher
from services.base import InMemoryRepository, announce
from shared.models import utcnow

logger = logging.getLogger("task_service")

# How far ahead find_due_soon() looks
DUE_SOON_WINDOW = timedelta(hours=24)


class Task(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    type: Optional[str] = None
    priority: str = "MEDIUM"
    status: str = "PENDING"
    assigned_to: Optional[str] = None
    customer_id: Optional[int] = None
    lead_id: Optional[int] = None
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class TaskService:
    """
    Simulated task service that publishes events.

    Example:
        service = TaskService(publisher)
        task = service.create_task(title="Call Acme", assigned_to="rep1")
        service.complete_task(task.id)
    """

    def __init__(self, publisher: EventPublisher):
        self.publisher = publisher
        self.tasks: InMemoryRepository[Task] = InMemoryRepository("Task")

    def _details(self, task: Task) -> dict:
        return task.model_dump(
            include={
                "title", "description", "type", "priority", "assigned_to",
                "customer_id", "lead_id", "due_date",
            }
        ) | {"task_id": task.id}

    def _announce(self, event_cls, **fields) -> bool:
        return announce(self.publisher.publish_task_event, event_cls, **fields)

    def create_task(self, title: str, **fields) -> Task:
        task = self.tasks.save(Task(id=self.tasks.next_id(), title=title, **fields))
        logger.info(f"Task {task.id} created: {title}")
        self._announce(TaskCreated, **self._details(task))
        return task

    def update_task(self, task_id: int, **changes) -> Task:
        """
        Raises:
            EntityNotFound: If the task does not exist
            ValidationError: If the changes leave an invalid task
        """
        _, task = self.tasks.update(task_id, **changes)
        logger.info(f"Task {task_id} updated: {sorted(changes)}")
        self._announce(TaskUpdated, **self._details(task))
        return task

    def assign_task(self, task_id: int, assigned_to: str) -> Task:
        previous, task = self.tasks.update(task_id, assigned_to=assigned_to)
        logger.info(f"Task {task_id} assigned: {previous.assigned_to} -> {assigned_to}")
        self._announce(
            TaskAssigned,
            task_id=task.id,
            old_assigned_to=previous.assigned_to,
            new_assigned_to=task.assigned_to,
            title=task.title,
            due_date=task.due_date,
        )
        return task

    def complete_task(self, task_id: int) -> Task:
        _, task = self.tasks.update(task_id, status="COMPLETED", completed_at=utcnow())
        logger.info(f"Task {task_id} completed")
        self._announce(
            TaskCompleted,
            task_id=task.id,
            assigned_to=task.assigned_to,
            title=task.title,
            completed_at=task.completed_at,
        )
        return task

    def mark_due_soon(self, task_id: int) -> Task:
        """Publish a due-soon reminder for one task."""
        task = self.tasks.require(task_id)
        self._announce(
            TaskDueSoon,
            task_id=task.id,
            assigned_to=task.assigned_to,
            title=task.title,
            due_date=task.due_date,
        )
        return task

    def find_due_soon(self, now: Optional[datetime] = None) -> list[Task]:
        """Open tasks whose due date falls within the next DUE_SOON_WINDOW."""
        now = now or utcnow()
        return [
            t for t in self.tasks.all()
            if t.status != "COMPLETED" and t.due_date is not None
            and now <= t.due_date <= now + DUE_SOON_WINDOW
        ]

    def delete_task(self, task_id: int) -> None:
        task = self.tasks.delete(task_id)
        logger.info(f"Task {task_id} deleted")
        self._announce(
            TaskDeleted,
            task_id=task.id,
            title=task.title,
            assigned_to=task.assigned_to,
        )
