"""Caller identity and the admin gate checked before every job."""

from dataclasses import dataclass
from typing import Optional

from .errors import JobRejected

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Caller:
    user_id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def require_admin(caller: Optional[Caller]) -> None:
    """Reject the job unless the caller holds the admin role."""
    if caller is None or not caller.is_admin:
        raise JobRejected("Unauthorized - Admin only")
