from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ..errors import AuthorizationError
from .constants import DISTRICT_ADMIN, ROLE_ALIASES, ROLES, STATE_ADMIN, SUPER_ADMIN


def normalize_role(value: Any) -> Optional[str]:
    if not value:
        return None
    text = str(value).strip()
    text = ROLE_ALIASES.get(text, text)
    return text if text in ROLES else None


def is_super_admin(user: Any) -> bool:
    return bool(user and normalize_role(user.role) == SUPER_ADMIN)


def is_state_admin(user: Any) -> bool:
    return bool(user and normalize_role(user.role) == STATE_ADMIN)


def can_manage_account(actor: Any, target: Any) -> bool:
    """Super admins manage everyone; state admins only district admins in their state."""

    if is_super_admin(actor):
        return True
    if is_state_admin(actor):
        return (
            normalize_role(target.role) == DISTRICT_ADMIN
            and bool(actor.state)
            and target.state == actor.state
        )
    return False


@dataclass(frozen=True)
class CallerScope:
    """What part of the federation a caller may see."""

    role: str
    state: Optional[str] = None
    district: Optional[str] = None
    user_id: Optional[int] = None

    @classmethod
    def for_user(cls, user: Any) -> "CallerScope":
        role = normalize_role(getattr(user, "role", None))
        if role is None:
            raise AuthorizationError("Invalid user role")
        return cls(role=role, state=user.state, district=user.district, user_id=user.id)

    @property
    def is_super_admin(self) -> bool:
        return self.role == SUPER_ADMIN


def scope_filters(scope: CallerScope, state_column, district_column) -> list:
    """Return SQLAlchemy criteria limiting a query to ``scope``."""

    if scope.role == SUPER_ADMIN:
        return []
    if scope.role == STATE_ADMIN:
        if not scope.state:
            raise AuthorizationError("State information not found for state admin")
        return [state_column == scope.state]
    if scope.role == DISTRICT_ADMIN:
        if not scope.district:
            raise AuthorizationError("District information not found for district admin")
        return [district_column == scope.district]
    raise AuthorizationError("Invalid user role")


def scope_allows(scope: CallerScope, state: Optional[str], district: Optional[str]) -> bool:
    """True when a record placed in ``state``/``district`` is visible to ``scope``."""

    if scope.role == SUPER_ADMIN:
        return True
    if scope.role == STATE_ADMIN:
        return bool(scope.state) and state == scope.state
    if scope.role == DISTRICT_ADMIN:
        return bool(scope.district) and district == scope.district
    return False
