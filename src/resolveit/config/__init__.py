"""
Configuration Module
====================

Application settings and domain constants using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="resolveit-escalation", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/resolveit",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Escalation ==========
    escalation_policy_path: Path = Field(
        default=Path("escalation_policy.yaml"),
        description="Path to escalation policy YAML file"
    )
    escalation_check_interval_minutes: int = Field(
        default=30,
        description="Minutes between auto-escalation sweeps",
        ge=1
    )
    scheduler_enabled: bool = Field(
        default=True,
        description="Run the escalation and analytics jobs in-process"
    )

    # ========== Daily Analytics ==========
    daily_analytics_hour: int = Field(default=0, ge=0, le=23, description="UTC hour of the daily job")
    daily_analytics_minute: int = Field(default=0, ge=0, le=59, description="UTC minute of the daily job")

    # ========== Email (Resend) ==========
    resend_api_key: Optional[str] = Field(
        default=None,
        description="Resend API key; email is skipped when unset"
    )
    email_api_url: str = Field(
        default="https://api.resend.com/emails",
        description="Email provider send endpoint"
    )
    email_from: str = Field(
        default="ResolveIt Notifications <notifications@resolveit.app>",
        description="Sender address for notification emails"
    )
    email_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for email API calls",
        ge=0.1,
        le=60
    )
    email_max_retries: int = Field(default=3, ge=1, le=10, description="Send attempts per email")
    email_queue_size: int = Field(
        default=500,
        description="Max pending email dispatch requests",
        ge=1
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class ComplaintCategory(str, Enum):
    """Complaint categories."""
    TECHNICAL = "TECHNICAL"
    BILLING = "BILLING"
    SERVICE = "SERVICE"
    GENERAL = "GENERAL"
    URGENT = "URGENT"
    HARASSMENT = "HARASSMENT"
    DISCRIMINATION = "DISCRIMINATION"
    SAFETY = "SAFETY"
    POLICY_VIOLATION = "POLICY_VIOLATION"
    OTHER = "OTHER"


class Priority(str, Enum):
    """Complaint priority levels, lowest first."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ComplaintStatus(str, Enum):
    """Complaint lifecycle statuses."""
    SUBMITTED = "SUBMITTED"
    IN_PROGRESS = "IN_PROGRESS"
    UNDER_REVIEW = "UNDER_REVIEW"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    ESCALATED = "ESCALATED"
    PENDING_INFO = "PENDING_INFO"
    REOPENED = "REOPENED"


class StaffRole(str, Enum):
    """User roles."""
    USER = "USER"
    ADMIN = "ADMIN"
    MODERATOR = "MODERATOR"
    SUPER_ADMIN = "SUPER_ADMIN"


class NotificationType(str, Enum):
    """In-app notification types."""
    COMPLAINT_CREATED = "COMPLAINT_CREATED"
    STATUS_UPDATED = "STATUS_UPDATED"
    ASSIGNED = "ASSIGNED"
    ESCALATED = "ESCALATED"
    RESOLVED = "RESOLVED"
    COMMENT_ADDED = "COMMENT_ADDED"
    DUE_DATE_APPROACHING = "DUE_DATE_APPROACHING"
    OVERDUE = "OVERDUE"
    AUTO_ESCALATED = "AUTO_ESCALATED"


class NoteType(str, Enum):
    """Internal note types."""
    GENERAL = "GENERAL"
    ESCALATION = "ESCALATION"
    RESOLUTION = "RESOLUTION"
    FOLLOW_UP = "FOLLOW_UP"
    SYSTEM = "SYSTEM"


# ========== Escalation constants ==========

CLOSED_STATUSES = (ComplaintStatus.RESOLVED, ComplaintStatus.CLOSED)

SENSITIVE_CATEGORIES = (
    ComplaintCategory.HARASSMENT,
    ComplaintCategory.DISCRIMINATION,
    ComplaintCategory.SAFETY,
)

ESCALATION_ROLES = (StaffRole.ADMIN, StaffRole.MODERATOR, StaffRole.SUPER_ADMIN)

# Lower value wins a workload tie
ROLE_PRECEDENCE = {
    StaffRole.SUPER_ADMIN: 0,
    StaffRole.ADMIN: 1,
    StaffRole.MODERATOR: 2,
}

MANUAL_ESCALATION_PRIORITIES = (Priority.HIGH, Priority.CRITICAL)

SYSTEM_ACTOR_NAME = "System (Auto-Escalation)"
AUTO_ESCALATION_PREFIX = "AUTO-ESCALATED: "
MANUAL_ESCALATION_PREFIX = "MANUAL ESCALATION: "


# ========== Lists for validation ==========

VALID_CATEGORIES = [c.value for c in ComplaintCategory]
VALID_PRIORITIES = [p.value for p in Priority]
VALID_STATUSES = [s.value for s in ComplaintStatus]
