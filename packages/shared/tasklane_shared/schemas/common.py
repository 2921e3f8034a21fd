from enum import Enum
from typing import Optional

from pydantic import BaseModel


class Role(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"


class InviteStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REVOKED = "revoked"


class EmailChangeStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"


class ErrorKind(str, Enum):
    BAD_REQUEST = "BadRequest"
    UNAUTHORIZED = "Unauthorized"
    FORBIDDEN = "Forbidden"
    NOT_FOUND = "NotFound"
    CONFLICT = "Conflict"
    INTERNAL = "InternalError"


class ErrorEnvelope(BaseModel):
    error: str
    message: str


class MessageResponse(BaseModel):
    message: str


class TokenBody(BaseModel):
    """Body of every endpoint keyed by a one-time token (verify, confirm, accept)."""
    token: Optional[str] = None
