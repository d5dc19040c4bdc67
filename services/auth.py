"""
Auth service simulator: user registration.

Registering a user publishes USER_REGISTERED on the user domain. The
notification service picks it up and sends the welcome email; the auth
service never talks to the mail server itself.
"""

import logging
import threading
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from messaging.envelope import UserRegistered
from messaging.publisher import EventPublisher
from services.base import InMemoryRepository, announce
from shared.models import utcnow

logger = logging.getLogger("auth_service")


class UsernameTaken(ValueError):
    """Raised when registering a username that already exists."""


class User(BaseModel):
    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    registered_at: datetime = Field(default_factory=utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class AuthService:
    """
    Simulated auth service.

    Example:
        service = AuthService(publisher)
        user = service.register("bob", "b@y.com", "Bob", "Jones")
    """

    def __init__(self, publisher: EventPublisher):
        self.publisher = publisher
        self.users: InMemoryRepository[User] = InMemoryRepository("User")
        # held across the username check and the save
        self._register_lock = threading.Lock()

    def register(
        self,
        username: str,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        """
        Create a user account and announce it.

        Raises:
            UsernameTaken: If the username is already registered
        """
        with self._register_lock:
            if any(u.username == username for u in self.users.all()):
                raise UsernameTaken(f"Username already exists: {username}")

            user = self.users.save(User(
                id=self.users.next_id(),
                username=username,
                email=email,
                first_name=first_name,
                last_name=last_name,
            ))
        logger.info(f"User registered: {username}")

        announce(
            self.publisher.publish_user_event,
            UserRegistered,
            user_id=user.id,
            username=user.username,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            full_name=user.full_name,
            registered_at=user.registered_at,
        )
        return user
