"""
Permission, ownership and role-hierarchy checks on top of a PermissionRegistry.
"""
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

from smartedu.core.exceptions import Unauthorized
from smartedu.services.permissions import PermissionRegistry

logger = logging.getLogger(__name__)

ROLE_RANK = {"admin": 3, "teacher": 2, "student": 1}

SENSITIVE_DATA_PERMISSIONS = {
    "user_personal_info": ["admin:read", "profile:read"],
    "financial_data": ["admin:read", "finance:read"],
    "system_logs": ["admin:read", "system:read"],
    "security_settings": ["admin:read", "admin:update"],
}


def _role(role: Any) -> str:
    return getattr(role, "value", role)


class AuthorizationService:
    def __init__(self, registry: PermissionRegistry):
        self.registry = registry

    def has_permission(self, role, permission: str) -> bool:
        return self.registry.has_permission(_role(role), permission)

    def has_all_permissions(self, role, permissions: Iterable[str]) -> bool:
        return self.registry.has_all(_role(role), permissions)

    def has_any_permission(self, role, permissions: Iterable[str]) -> bool:
        return self.registry.has_any(_role(role), permissions)

    def get_role_permissions(self, role) -> List[str]:
        return self.registry.get_role_permissions(_role(role))

    def can_access_resource(
        self,
        role,
        user_id: int,
        resource_owner_id: int,
        required_permission: str,
        allow_owner_access: bool = True,
    ) -> bool:
        if self.has_permission(role, required_permission):
            return True
        return allow_owner_access and user_id == resource_owner_id

    def role_hierarchy_allows(self, acting_role, target_role) -> bool:
        """True if ``acting_role`` may manage users of ``target_role``."""
        return ROLE_RANK.get(_role(acting_role), 0) >= ROLE_RANK.get(_role(target_role), 0)

    def is_owner_or_admin(self, role, user_id: int, owner_id: int) -> bool:
        return _role(role) == "admin" or user_id == owner_id

    def ensure_owner_or_admin(
        self,
        role,
        user_id: int,
        owner_id: int,
        action: str,
        resource_id: Optional[int] = None,
    ) -> None:
        """Raise Unauthorized unless the caller created the resource or is an admin."""
        if not self.is_owner_or_admin(role, user_id, owner_id):
            self.log_unauthorized_access(role, user_id, action, "owner", resource_id)
            raise Unauthorized(f"Not authorized to {action.replace('_', ' ')}")

    def can_access_sensitive_data(self, role, data_type: str) -> bool:
        required = SENSITIVE_DATA_PERMISSIONS.get(data_type)
        if not required:
            return False
        return self.has_any_permission(role, required)

    def create_access_context(self, role, user_id: int) -> "AccessContext":
        return AccessContext(self, _role(role), user_id)

    def log_unauthorized_access(
        self,
        role,
        user_id: int,
        attempted_action: str,
        required_permission: str,
        resource_id: Optional[int] = None,
    ) -> None:
        logger.warning(
            "Unauthorized access attempt",
            extra={
                "user_role": _role(role),
                "user_id": user_id,
                "attempted_action": attempted_action,
                "required_permission": required_permission,
                "resource_id": resource_id,
            },
        )


@dataclass(frozen=True)
class AccessContext:
    """Checks bound to one caller."""
    authz: AuthorizationService
    role: str
    user_id: int

    @property
    def permissions(self) -> List[str]:
        return self.authz.get_role_permissions(self.role)

    def has_permission(self, permission: str) -> bool:
        return self.authz.has_permission(self.role, permission)

    def has_all_permissions(self, permissions: Iterable[str]) -> bool:
        return self.authz.has_all_permissions(self.role, permissions)

    def has_any_permission(self, permissions: Iterable[str]) -> bool:
        return self.authz.has_any_permission(self.role, permissions)

    def can_access_resource(self, resource_owner_id: int, required_permission: str, allow_owner_access: bool = True) -> bool:
        return self.authz.can_access_resource(
            self.role, self.user_id, resource_owner_id, required_permission, allow_owner_access
        )
