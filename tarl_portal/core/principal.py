"""The authenticated caller as seen by the permission engine."""

from typing import Optional

from pydantic import BaseModel


class Principal(BaseModel):
    """The validated ``(user_id, role)`` pair every check runs against."""

    user_id: int
    role: str
    hierarchy_level: int
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
