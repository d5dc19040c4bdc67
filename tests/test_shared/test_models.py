"""
Tests for notification models.

These tests verify request validation and the derived paging fields.
"""

import pytest
from pydantic import ValidationError

from shared.models import (
    STATUS_ORDER,
    CreateNotificationRequest,
    Notification,
    NotificationStatistics,
    NotificationStatus,
    NotificationType,
    Page,
)


class TestCreateNotificationRequest:
    """Tests for request validation."""

    def test_minimal_request(self):
        """Test that related fields are optional."""
        request = CreateNotificationRequest(type=NotificationType.INFO, message="hi", recipient="a@x.com")

        assert request.related_type is None
        assert request.related_id is None

    def test_empty_message_rejected(self):
        with pytest.raises(ValidationError):
            CreateNotificationRequest(type=NotificationType.INFO, message="", recipient="a@x.com")

    def test_unknown_type_rejected(self):
        """Test that only the known notification types are accepted."""
        with pytest.raises(ValidationError):
            CreateNotificationRequest(type="PROMOTION", message="hi", recipient="a@x.com")

    def test_type_from_string(self):
        request = CreateNotificationRequest(type="LEAD", message="hi", recipient="a@x.com")

        assert request.type == NotificationType.LEAD


class TestNotification:
    """Tests for the stored notification model."""

    def test_defaults(self):
        """Test that a new notification is unread and timestamped in UTC."""
        n = Notification(id=1, type=NotificationType.TASK, message="m", recipient="r")

        assert n.status == NotificationStatus.UNREAD
        assert n.created_at.tzinfo is not None

    def test_json_round_trip(self):
        n = Notification(id=1, type=NotificationType.TASK, message="m", recipient="r", related_type="TASK", related_id=9)

        assert Notification.model_validate_json(n.model_dump_json()) == n

    def test_status_order(self):
        """Test the forward-only lifecycle ordering."""
        assert STATUS_ORDER[NotificationStatus.UNREAD] < STATUS_ORDER[NotificationStatus.READ]
        assert STATUS_ORDER[NotificationStatus.READ] < STATUS_ORDER[NotificationStatus.ARCHIVED]


class TestPage:
    """Tests for computed paging fields."""

    @pytest.mark.parametrize("total,size,expected_pages", [
        (0, 20, 0),
        (1, 20, 1),
        (20, 20, 1),
        (21, 20, 2),
    ])
    def test_total_pages(self, total, size, expected_pages):
        page = Page[int](items=[], page=0, size=size, total=total)

        assert page.total_pages == expected_pages

    def test_has_next(self):
        assert Page[int](items=[1, 2], page=0, size=2, total=5).has_next is True
        assert Page[int](items=[5], page=2, size=2, total=5).has_next is False

    def test_computed_fields_are_serialized(self):
        """Test that API clients see total_pages and has_next."""
        data = Page[int](items=[1], page=0, size=1, total=2).model_dump()

        assert data["total_pages"] == 2
        assert data["has_next"] is True

    def test_invalid_size_rejected(self):
        with pytest.raises(ValidationError):
            Page[int](items=[], page=0, size=0, total=0)


class TestNotificationStatistics:
    """Tests for the statistics snapshot."""

    def test_defaults_to_zero(self):
        stats = NotificationStatistics()

        assert stats.total_notifications == 0
        assert stats.customer_notifications == 0

    def test_is_immutable(self):
        stats = NotificationStatistics(total_notifications=3)

        with pytest.raises(ValidationError):
            stats.total_notifications = 4
