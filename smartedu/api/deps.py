"""
FastAPI dependencies for bearer-token authentication and permission gates.
"""
import logging
from typing import List

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from smartedu.container import ServiceContainer
from smartedu.core.exceptions import AccountDeactivated, InvalidSession, TokenError
from smartedu.schemas.auth import UserProfile

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


def auth_error(status_code: int, message: str, code: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"message": message, "code": code})


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_current_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    container: ServiceContainer = Depends(get_container),
) -> UserProfile:
    if creds is None or not creds.credentials:
        raise auth_error(status.HTTP_401_UNAUTHORIZED, "Access token is required", "MISSING_TOKEN")
    try:
        return container.auth.verify_token(creds.credentials)
    except AccountDeactivated as e:
        raise auth_error(status.HTTP_403_FORBIDDEN, e.message, e.code) from e
    except (TokenError, InvalidSession) as e:
        logger.info(f"Rejected access token: {e.code}")
        raise auth_error(status.HTTP_401_UNAUTHORIZED, "Invalid or expired token", "INVALID_TOKEN") from e


def require_active_user(user: UserProfile = Depends(get_current_user)) -> UserProfile:
    if not user.is_active:
        raise auth_error(status.HTTP_403_FORBIDDEN, "Account is deactivated", "ACCOUNT_DEACTIVATED")
    return user


def require_email_verification(user: UserProfile = Depends(get_current_user)) -> UserProfile:
    if not user.email_verified:
        raise auth_error(status.HTTP_403_FORBIDDEN, "Email verification required", "EMAIL_NOT_VERIFIED")
    return user


def require_roles(*roles: str):
    def checker(user: UserProfile = Depends(get_current_user)) -> UserProfile:
        if user.role not in roles:
            logger.warning(f"User {user.id} with role {user.role} denied; needs one of {roles}")
            raise auth_error(status.HTTP_403_FORBIDDEN, "Insufficient permissions", "INSUFFICIENT_PERMISSIONS")
        return user
    return checker


def require_permission(permission: str):
    def checker(
        user: UserProfile = Depends(get_current_user),
        container: ServiceContainer = Depends(get_container),
    ) -> UserProfile:
        if not container.authz.has_permission(user.role, permission):
            container.authz.log_unauthorized_access(user.role, user.id, "request", permission)
            raise auth_error(status.HTTP_403_FORBIDDEN, f"Permission '{permission}' required", "PERMISSION_DENIED")
        return user
    return checker


def require_all_permissions(permissions: List[str]):
    def checker(
        user: UserProfile = Depends(get_current_user),
        container: ServiceContainer = Depends(get_container),
    ) -> UserProfile:
        if not container.authz.has_all_permissions(user.role, permissions):
            container.authz.log_unauthorized_access(user.role, user.id, "request", ",".join(permissions))
            raise auth_error(status.HTTP_403_FORBIDDEN, "Insufficient permissions", "INSUFFICIENT_PERMISSIONS")
        return user
    return checker


def require_any_permission(permissions: List[str]):
    def checker(
        user: UserProfile = Depends(get_current_user),
        container: ServiceContainer = Depends(get_container),
    ) -> UserProfile:
        if not container.authz.has_any_permission(user.role, permissions):
            container.authz.log_unauthorized_access(user.role, user.id, "request", "|".join(permissions))
            raise auth_error(status.HTTP_403_FORBIDDEN, "No matching permissions", "NO_MATCHING_PERMISSIONS")
        return user
    return checker
