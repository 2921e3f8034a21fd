"""Single-use, expiring tokens mailed to users (verification, password reset, email change)."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class OneTimeTokenMixin(UUIDMixin, SQLModel):
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    token: str = Field(nullable=False, unique=True, index=True)
    expires_at: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True))
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )


class EmailVerificationToken(OneTimeTokenMixin, table=True):
    __tablename__ = "email_verification_tokens"

    used_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))


class PasswordResetToken(OneTimeTokenMixin, table=True):
    __tablename__ = "password_reset_tokens"

    used_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))


class EmailChangeRequest(OneTimeTokenMixin, table=True):
    __tablename__ = "email_change_requests"

    new_email: str = Field(nullable=False)
    status: str = Field(default="pending", nullable=False)  # pending | confirmed
    confirmed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
