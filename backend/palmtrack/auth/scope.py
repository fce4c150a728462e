"""Request-scoped data visibility.

An `AccessScope` is built once per request from the authenticated user
and passed explicitly to every query that touches agent-owned rows.
ADMIN sees everything; AGENT sees only rows of its own agent.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Select, false

from palmtrack.middleware.exceptions import PermissionDeniedError
from palmtrack.models.user import User, UserRole


@dataclass(frozen=True)
class AccessScope:
    role: UserRole
    user_id: str
    agent_id: str | None = None

    @classmethod
    def for_user(cls, user: User) -> "AccessScope":
        return cls(role=user.role, user_id=user.id, agent_id=user.agent_id)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def restrict(self, stmt: Select, column) -> Select:
        """Filter `stmt` to this scope's agent via `column`."""
        if self.is_admin:
            return stmt
        if not self.agent_id:
            # Agent login not linked to an agent: sees nothing
            return stmt.where(false())
        return stmt.where(column == self.agent_id)

    def can_access_agent(self, agent_id: str | None) -> bool:
        return self.is_admin or (agent_id is not None and agent_id == self.agent_id)

    def require_agent(self, agent_id: str | None) -> None:
        if not self.can_access_agent(agent_id):
            raise PermissionDeniedError("You can only access your own agent records")
