"""Domain models for callers of the workflow engine."""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class Role(str, Enum):
    """Role of an authenticated caller."""

    EMPLOYEE = "employee"
    MARKET_MANAGER = "market_manager"
    BDO = "bdo"
    ADMIN = "admin"


FIELD_ROLES = frozenset({Role.EMPLOYEE, Role.MARKET_MANAGER, Role.BDO})


@dataclass(frozen=True)
class Actor:
    """An already-authenticated caller and its role."""

    owner_id: UUID
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN
