"""
Runtime configuration for the CRM event services.

Settings are read from environment variables (and an optional .env file)
with pydantic-settings, so every service process can be pointed at a
different broker or mail server without code changes.

Design decisions:
- One flat Settings object shared by publishers, consumers and the API
- Defaults run everything in-process (memory bus, mock email)
- get_settings() builds a fresh instance; callers pass it down explicitly
"""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables (.env supported)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # message bus
    bus_backend: Literal["memory", "rabbitmq"] = Field(default="memory")
    exchange_name: str = Field(default="crm.events.exchange")
    memory_publish_log_limit: Optional[int] = Field(default=10_000)
    memory_max_queue_length: Optional[int] = Field(default=10_000)

    # rabbitmq
    rabbitmq_url: Optional[str] = Field(default=None)
    rabbitmq_host: str = Field(default="127.0.0.1")
    rabbitmq_port: int = Field(default=5672)
    rabbitmq_user: str = Field(default="guest")
    rabbitmq_password: str = Field(default="guest")
    rabbitmq_vhost: str = Field(default="/")
    rabbitmq_heartbeat: int = Field(default=600)
    rabbitmq_blocked_connection_timeout: float = Field(default=300.0)
    rabbitmq_socket_timeout: float = Field(default=10.0)
    rabbitmq_prefetch_count: int = Field(default=1)
    rabbitmq_reconnect_delay: float = Field(default=5.0)

    # mail
    email_backend: Literal["mock", "smtp"] = Field(default="mock")
    smtp_host: str = Field(default="localhost")
    smtp_port: int = Field(default=465)
    smtp_username: Optional[str] = Field(default=None)
    smtp_password: Optional[str] = Field(default=None)
    smtp_use_ssl: bool = Field(default=True)
    smtp_starttls: bool = Field(default=False)
    smtp_timeout: float = Field(default=30.0)
    email_from_address: str = Field(default="noreply@crm.com")
    email_from_name: str = Field(default="CRM System")

    # notifications
    admin_recipient: str = Field(default="admin@crm.com")
    notification_data_file: Optional[str] = Field(default=None)
    api_consume_events: bool = Field(default=False)

    # logging
    log_level: str = Field(default="INFO")


def get_settings() -> Settings:
    return Settings()
