# SQLModel definitions, imported here to ensure metadata is populated for Alembic.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .one_time_token import EmailVerificationToken, PasswordResetToken, EmailChangeRequest  # noqa: F401
from .workspace import Workspace, WorkspaceMember, WorkspaceInvite  # noqa: F401
from .notification import Notification  # noqa: F401
from .project import Project  # noqa: F401
from .task import Task  # noqa: F401
