"""
Notification models for the CRM notification service.

A Notification is the persisted side effect that consumers derive from
domain events. Producing services never create one directly.

Design decisions:
- Using Pydantic for validation and serialization
- related_type/related_id are a loose back-reference, not a foreign key
- Status moves forward only: UNREAD -> READ -> ARCHIVED
"""

from datetime import datetime, timezone
from enum import Enum
from math import ceil
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================

class NotificationType(str, Enum):
    """Kinds of notification shown to CRM users."""
    INFO = "INFO"
    WARNING = "WARNING"
    ALERT = "ALERT"
    TASK = "TASK"
    LEAD = "LEAD"
    OPPORTUNITY = "OPPORTUNITY"
    CUSTOMER = "CUSTOMER"


class NotificationStatus(str, Enum):
    """Read state of a notification."""
    UNREAD = "UNREAD"
    READ = "READ"
    ARCHIVED = "ARCHIVED"


# Position of each status in its lifecycle, used to refuse backwards moves
STATUS_ORDER = {
    NotificationStatus.UNREAD: 0,
    NotificationStatus.READ: 1,
    NotificationStatus.ARCHIVED: 2,
}


# =============================================================================
# Notification
# =============================================================================

class Notification(BaseModel):
    """
    A stored notification.

    Created by a consumer reacting to a bus message, marked read by the
    recipient, deleted by an administrator.
    """
    id: int = Field(..., description="Store-assigned identifier")
    type: NotificationType = Field(..., description="Derived notification category")
    message: str = Field(..., description="Human readable text")
    recipient: str = Field(..., description="Address or identifier of the recipient")
    status: NotificationStatus = Field(default=NotificationStatus.UNREAD)
    related_type: Optional[str] = Field(
        default=None,
        description="Kind of business entity or event this refers to",
    )
    related_id: Optional[int] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class CreateNotificationRequest(BaseModel):
    """Everything needed to create a notification."""
    type: NotificationType
    message: str = Field(..., min_length=1)
    recipient: str = Field(..., min_length=1)
    related_type: Optional[str] = None
    related_id: Optional[int] = None


# =============================================================================
# Query results
# =============================================================================

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One page of a larger, ordered result set."""
    items: list[T] = Field(default_factory=list)
    page: int = Field(..., ge=0, description="Zero-based page number")
    size: int = Field(..., ge=1)
    total: int = Field(..., ge=0, description="Total matching items across all pages")

    @computed_field
    @property
    def total_pages(self) -> int:
        return ceil(self.total / self.size) if self.total else 0

    @computed_field
    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.total_pages


class NotificationStatistics(BaseModel):
    """Counts of stored notifications by status and by type."""
    model_config = ConfigDict(frozen=True)

    total_notifications: int = 0
    unread_notifications: int = 0
    read_notifications: int = 0
    archived_notifications: int = 0
    info_notifications: int = 0
    warning_notifications: int = 0
    alert_notifications: int = 0
    task_notifications: int = 0
    lead_notifications: int = 0
    opportunity_notifications: int = 0
    customer_notifications: int = 0
