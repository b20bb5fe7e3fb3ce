"""
Composition root: one instance of each service, wired by constructor.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import sessionmaker

from smartedu.core.config import Settings
from smartedu.core.security import PasswordHasher
from smartedu.core.tokens import TokenService
from smartedu.models import utcnow
from smartedu.services.activity import ActivityLogger
from smartedu.services.assessments import AssessmentService
from smartedu.services.attempts import AttemptService
from smartedu.services.auth import AuthService
from smartedu.services.authorization import AuthorizationService
from smartedu.services.permissions import PermissionRegistry
from smartedu.services.sessions import SessionStore


@dataclass
class ServiceContainer:
    settings: Settings
    session_factory: sessionmaker
    hasher: PasswordHasher
    tokens: TokenService
    sessions: SessionStore
    activity: ActivityLogger
    registry: PermissionRegistry
    authz: AuthorizationService
    auth: AuthService
    assessments: AssessmentService
    attempts: AttemptService


def build_container(
    settings: Settings,
    session_factory: sessionmaker,
    clock: Callable[[], datetime] = utcnow,
) -> ServiceContainer:
    hasher = PasswordHasher(rounds=settings.BCRYPT_ROUNDS)
    tokens = TokenService.from_settings(settings)
    sessions = SessionStore(ttl_days=settings.SESSION_TTL_DAYS, clock=clock)
    activity = ActivityLogger(session_factory, clock=clock)
    registry = PermissionRegistry()
    authz = AuthorizationService(registry)
    return ServiceContainer(
        settings=settings,
        session_factory=session_factory,
        hasher=hasher,
        tokens=tokens,
        sessions=sessions,
        activity=activity,
        registry=registry,
        authz=authz,
        auth=AuthService(session_factory, hasher, tokens, sessions, activity, clock=clock),
        assessments=AssessmentService(session_factory, authz, clock=clock),
        attempts=AttemptService(
            session_factory,
            auto_submit_min_age_hours=settings.AUTO_SUBMIT_MIN_AGE_HOURS,
            clock=clock,
        ),
    )
