"""
Role -> permission registry.

A permission is a ``resource:action`` string; ``*`` grants everything.
One registry is built at startup and injected wherever checks happen.
"""
import copy
import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)

WILDCARD = "*"
CORE_ROLES = ("student", "teacher", "admin")
PERMISSION_PATTERN = re.compile(r"^[a-z]+:[a-z]+$")

DEFAULT_PERMISSIONS: Dict[str, List[str]] = {
    "student": [
        "profile:read",
        "profile:update",
        "content:read",
        "assessment:take",
        "assignment:submit",
        "notification:read",
        "gamification:view",
        "progress:view",
    ],
    "teacher": [
        "profile:read",
        "profile:update",
        "content:create",
        "content:read",
        "content:update",
        "content:delete",
        "assessment:create",
        "assessment:read",
        "assessment:update",
        "assessment:delete",
        "assignment:create",
        "assignment:read",
        "assignment:update",
        "assignment:grade",
        "student:read",
        "student:track",
        "notification:send",
        "notification:read",
        "gamification:manage",
        "analytics:view",
        "class:manage",
    ],
    "admin": [WILDCARD],
}


def is_valid_permission(permission: str) -> bool:
    return permission == WILDCARD or bool(PERMISSION_PATTERN.match(permission))


@dataclass(frozen=True)
class ConfigurationReport:
    is_valid: bool
    errors: List[str] = field(default_factory=list)


class PermissionRegistry:
    """Thread-safe, mutable role -> ordered permission list."""

    def __init__(self, defaults: Optional[Mapping[str, Iterable[str]]] = None):
        self._defaults = {role: list(perms) for role, perms in (defaults or DEFAULT_PERMISSIONS).items()}
        self._lock = threading.RLock()
        self._roles: Dict[str, List[str]] = copy.deepcopy(self._defaults)

    def _perms(self, role: str) -> List[str]:
        return self._roles.get(role, [])

    def has_permission(self, role: str, permission: str) -> bool:
        with self._lock:
            perms = self._perms(role)
            return WILDCARD in perms or permission in perms

    def has_all(self, role: str, permissions: Iterable[str]) -> bool:
        with self._lock:
            perms = self._perms(role)
            if WILDCARD in perms:
                return True
            return all(p in perms for p in permissions)

    def has_any(self, role: str, permissions: Iterable[str]) -> bool:
        with self._lock:
            perms = self._perms(role)
            if WILDCARD in perms:
                return True
            return any(p in perms for p in permissions)

    def get_role_permissions(self, role: str) -> List[str]:
        with self._lock:
            return list(self._perms(role))

    def add_permission(self, role: str, permission: str) -> None:
        with self._lock:
            perms = self._roles.setdefault(role, [])
            if permission not in perms:
                perms.append(permission)
                logger.info(f"Added permission '{permission}' to role '{role}'")

    def remove_permission(self, role: str, permission: str) -> None:
        # Admin checks short-circuit on "*", so removing a named permission
        # from admin does not change what admin can do.
        with self._lock:
            perms = self._roles.get(role)
            if perms and permission in perms:
                perms.remove(permission)
                logger.info(f"Removed permission '{permission}' from role '{role}'")

    def set_role_permissions(self, role: str, permissions: Iterable[str]) -> None:
        with self._lock:
            self._roles[role] = list(dict.fromkeys(permissions))
            logger.info(f"Set permissions for role '{role}': {', '.join(self._roles[role])}")

    def reset_to_defaults(self) -> None:
        with self._lock:
            self._roles = copy.deepcopy(self._defaults)
        logger.info("Role permissions reset to default values")

    def all_system_permissions(self) -> List[str]:
        with self._lock:
            found = {p for perms in self._roles.values() for p in perms if p != WILDCARD}
        return sorted(found)

    def snapshot(self) -> Dict[str, List[str]]:
        with self._lock:
            return copy.deepcopy(self._roles)

    def validate_configuration(self) -> ConfigurationReport:
        errors: List[str] = []
        roles = self.snapshot()
        for role in CORE_ROLES:
            if not roles.get(role):
                errors.append(f"Role '{role}' has no permissions defined")
        for role, perms in roles.items():
            for permission in perms:
                if not is_valid_permission(permission):
                    errors.append(f"Invalid permission '{permission}' for role '{role}'")
        return ConfigurationReport(is_valid=not errors, errors=errors)
