"""
FastAPI application for the CRM notification service.

This application provides:
1. Notification endpoints (/api/v1/notifications/...)
2. Email endpoints for manual sends (/api/v1/email/...)
3. Optionally, the event consumers in the same process (API_CONSUME_EVENTS=true)

Run with:
    uvicorn api.main:app --reload

Then visit http://localhost:8000/docs for interactive API documentation.

Design decisions:
- Dependencies come from module-level state that tests replace with
  reset_api_state()
- Not-found maps to 404, email transport failures to 500
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, status
from pydantic import BaseModel, Field

from notification_service.service import NotificationService
from notification_service.worker import NotificationWorker
from shared.channels import EmailDeliveryError, EmailGateway, create_email_gateway
from shared.config import get_settings
from shared.logging_setup import configure_logging
from shared.models import (
    CreateNotificationRequest,
    Notification,
    NotificationStatistics,
    NotificationStatus,
    NotificationType,
    Page,
)
from shared.notification_store import NotificationNotFound, NotificationStore

logger = logging.getLogger("notification_api")


# Request/response models
class EmailRequest(BaseModel):
    """A plain email to send through the gateway."""
    to: str = Field(..., min_length=1)
    subject: str
    body: str


class MessageResponse(BaseModel):
    message: str


# =============================================================================
# Application state
# =============================================================================

# Module-level instances, built lazily from settings
_service: Optional[NotificationService] = None
_email_gateway: Optional[EmailGateway] = None
_worker: Optional[NotificationWorker] = None


def get_notification_service() -> NotificationService:
    """Get the notification service instance."""
    global _service
    if _service is None:
        _service = NotificationService(NotificationStore(get_settings().notification_data_file))
    return _service


def get_email_gateway() -> EmailGateway:
    """Get the email gateway instance."""
    global _email_gateway
    if _email_gateway is None:
        _email_gateway = create_email_gateway(get_settings())
    return _email_gateway


def reset_api_state(
    service: Optional[NotificationService] = None,
    email_gateway: Optional[EmailGateway] = None,
) -> None:
    """Reset API state (for testing)."""
    global _service, _email_gateway
    _service = service
    _email_gateway = email_gateway


# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    global _worker
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Starting CRM Notification API")

    if settings.api_consume_events:
        service = get_notification_service()
        _worker = NotificationWorker(
            settings=settings,
            store=service.store,
            email_gateway=get_email_gateway(),
        )
        _worker.start()
    try:
        yield
    finally:
        if _worker is not None:
            _worker.stop()
            _worker = None
        logger.info("Shutting down")


# Create the FastAPI app
app = FastAPI(
    title="CRM Notification Service",
    description="""
    Notifications derived from CRM domain events, plus manual email sends.

    ## Endpoints

    - `/api/v1/notifications/*` - Query and manage stored notifications
    - `/api/v1/email/*` - Send a test or welcome email
    """,
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "notification-service"}


# =============================================================================
# Notifications
# =============================================================================

@app.post(
    "/api/v1/notifications",
    response_model=Notification,
    status_code=status.HTTP_201_CREATED,
    tags=["Notifications"],
)
def create_notification(
    request: CreateNotificationRequest,
    service: NotificationService = Depends(get_notification_service),
) -> Notification:
    """Create a notification (always UNREAD)."""
    return service.create_notification(request)


@app.get("/api/v1/notifications/statistics", response_model=NotificationStatistics, tags=["Notifications"])
def get_statistics(service: NotificationService = Depends(get_notification_service)):
    """Counts of notifications by status and by type."""
    return service.get_statistics()


@app.get("/api/v1/notifications/related", response_model=list[Notification], tags=["Notifications"])
def get_by_related_entity(
    related_type: str = Query(..., alias="relatedType"),
    related_id: int = Query(..., alias="relatedId"),
    service: NotificationService = Depends(get_notification_service),
):
    return service.get_notifications_by_related_entity(related_type, related_id)


@app.get("/api/v1/notifications/created-at-range", response_model=list[Notification], tags=["Notifications"])
def get_by_created_at_range(
    start_date: datetime = Query(..., alias="startDate"),
    end_date: datetime = Query(..., alias="endDate"),
    service: NotificationService = Depends(get_notification_service),
):
    """Notifications created between two ISO-8601 timestamps (naive values are UTC)."""
    return service.get_notifications_by_created_at_range(start_date, end_date)


@app.get("/api/v1/notifications/recipient/{recipient}", response_model=Page[Notification], tags=["Notifications"])
def get_by_recipient(
    recipient: str,
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=500),
    service: NotificationService = Depends(get_notification_service),
):
    return service.get_notifications_by_recipient(recipient, page=page, size=size)


@app.get("/api/v1/notifications/status/{notification_status}", response_model=Page[Notification], tags=["Notifications"])
def get_by_status(
    notification_status: NotificationStatus,
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=500),
    service: NotificationService = Depends(get_notification_service),
):
    return service.get_notifications_by_status(notification_status, page=page, size=size)


@app.get("/api/v1/notifications/type/{notification_type}", response_model=Page[Notification], tags=["Notifications"])
def get_by_type(
    notification_type: NotificationType,
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=500),
    service: NotificationService = Depends(get_notification_service),
):
    return service.get_notifications_by_type(notification_type, page=page, size=size)


@app.get("/api/v1/notifications/count/recipient/{recipient}", response_model=int, tags=["Notifications"])
def count_by_recipient(recipient: str, service: NotificationService = Depends(get_notification_service)):
    return service.count_by_recipient(recipient)


@app.get("/api/v1/notifications/count/status/{notification_status}", response_model=int, tags=["Notifications"])
def count_by_status(
    notification_status: NotificationStatus,
    service: NotificationService = Depends(get_notification_service),
):
    return service.count_by_status(notification_status)


@app.get("/api/v1/notifications/count/type/{notification_type}", response_model=int, tags=["Notifications"])
def count_by_type(
    notification_type: NotificationType,
    service: NotificationService = Depends(get_notification_service),
):
    return service.count_by_type(notification_type)


@app.get("/api/v1/notifications/{notification_id}", response_model=Notification, tags=["Notifications"])
def get_notification(notification_id: int, service: NotificationService = Depends(get_notification_service)):
    notification = service.get_notification(notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail=f"Notification not found with ID: {notification_id}")
    return notification


@app.patch("/api/v1/notifications/{notification_id}/read", response_model=Notification, tags=["Notifications"])
def mark_as_read(notification_id: int, service: NotificationService = Depends(get_notification_service)):
    try:
        return service.mark_as_read(notification_id)
    except NotificationNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.patch("/api/v1/notifications/{notification_id}/archive", response_model=Notification, tags=["Notifications"])
def archive(notification_id: int, service: NotificationService = Depends(get_notification_service)):
    try:
        return service.archive(notification_id)
    except NotificationNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.delete(
    "/api/v1/notifications/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Notifications"],
)
def delete_notification(notification_id: int, service: NotificationService = Depends(get_notification_service)):
    try:
        service.delete_notification(notification_id)
    except NotificationNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


# =============================================================================
# Email
# =============================================================================

@app.post("/api/v1/email/test", response_model=MessageResponse, tags=["Email"])
def send_test_email(request: EmailRequest, gateway: EmailGateway = Depends(get_email_gateway)):
    """Send a plain email through the configured gateway."""
    try:
        gateway.send(request.to, request.subject, request.body)
    except EmailDeliveryError as e:
        logger.error(f"Failed to send test email: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to send email: {e}")
    return MessageResponse(message="Email sent successfully!")


@app.post("/api/v1/email/welcome", response_model=MessageResponse, tags=["Email"])
def send_welcome_email(
    email: str = Query(...),
    username: str = Query(...),
    full_name: str = Query(..., alias="fullName"),
    gateway: EmailGateway = Depends(get_email_gateway),
):
    """Send the welcome email by hand (e.g. to resend after a failure)."""
    try:
        gateway.send_welcome_email(email, username, full_name)
    except EmailDeliveryError as e:
        logger.error(f"Failed to send welcome email: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to send welcome email: {e}")
    return MessageResponse(message="Welcome email sent successfully!")
