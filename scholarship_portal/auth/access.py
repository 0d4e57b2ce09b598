"""Request admission for every sensitive route.

Each route declares a :class:`RoutePolicy` up front. A request is admitted
in two steps, always in this order:

1. the bearer credential must verify and its email claim must equal the
   ``email`` query parameter (401 when the credential is missing or
   invalid, 403 when the identities differ);
2. for role-gated policies, the stored role of that email must be in the
   policy's allowed set (403 otherwise).
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scholarship_portal.auth import jwt_handler
from scholarship_portal.core import config
from scholarship_portal.database import database_unavailable, get_db
from scholarship_portal.models.user import Role, User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


class AccessOutcome(str, Enum):
    ADMITTED = 'admitted'
    UNAUTHENTICATED = 'unauthenticated'
    IDENTITY_MISMATCH = 'identity_mismatch'
    FORBIDDEN = 'forbidden'


@dataclass(frozen=True)
class RoutePolicy:
    requires_auth: bool = True
    allowed_roles: frozenset[Role] = field(default_factory=frozenset)


PUBLIC = RoutePolicy(requires_auth=False)
AUTHENTICATED = RoutePolicy()
ADMIN_ONLY = RoutePolicy(allowed_roles=frozenset({Role.ADMIN}))
STAFF = RoutePolicy(allowed_roles=frozenset({Role.MODERATOR, Role.ADMIN}))


@dataclass(frozen=True)
class AccessDecision:
    outcome: AccessOutcome
    identity: str | None = None
    role: Role | None = None

    @property
    def admitted(self) -> bool:
        return self.outcome is AccessOutcome.ADMITTED


@dataclass(frozen=True)
class Caller:
    email: str | None
    role: Role | None = None


def normalize_email(value: str | None) -> str:
    return (value or '').strip().lower()


def resolve_role(db: Session, email: str) -> Role | None:
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        return None
    try:
        return Role(user.role or Role.APPLICANT.value)
    except ValueError:
        logger.warning('User %s has unknown role %r', email, user.role)
        return None


def check_identity(credential: str | None, claimed_email: str | None) -> AccessDecision:
    claim = jwt_handler.verify_credential(credential)
    if claim is None:
        return AccessDecision(AccessOutcome.UNAUTHENTICATED)

    identity = normalize_email(claim)
    if identity != normalize_email(claimed_email):
        return AccessDecision(AccessOutcome.IDENTITY_MISMATCH, identity=identity)

    return AccessDecision(AccessOutcome.ADMITTED, identity=identity)


def evaluate_access(
    policy: RoutePolicy,
    credential: str | None,
    claimed_email: str | None,
    db: Session,
) -> AccessDecision:
    if not policy.requires_auth:
        return AccessDecision(AccessOutcome.ADMITTED, identity=normalize_email(claimed_email) or None)

    decision = check_identity(credential, claimed_email)
    if not decision.admitted or not policy.allowed_roles:
        return decision

    role = resolve_role(db, decision.identity)
    if role not in policy.allowed_roles:
        return AccessDecision(AccessOutcome.FORBIDDEN, identity=decision.identity, role=role)

    return AccessDecision(AccessOutcome.ADMITTED, identity=decision.identity, role=role)


def extract_credential(
    request: Request,
    bearer: HTTPAuthorizationCredentials | None = None,
) -> str | None:
    if config.AUTH_TRANSPORT == 'cookie':
        return request.cookies.get(config.AUTH_COOKIE_NAME) or None
    if bearer is None or bearer.scheme.lower() != 'bearer':
        return None
    return bearer.credentials or None


def require_access(policy: RoutePolicy):
    """Build the FastAPI dependency that enforces ``policy``."""

    def dependency(
        request: Request,
        email: str | None = Query(default=None),
        bearer: HTTPAuthorizationCredentials | None = Depends(security),
        db: Session = Depends(get_db),
    ) -> Caller:
        credential = extract_credential(request, bearer)
        try:
            decision = evaluate_access(policy, credential, email, db)
        except SQLAlchemyError as exc:
            raise database_unavailable(db) from exc

        if decision.outcome is AccessOutcome.UNAUTHENTICATED:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Unauthorized')
        if decision.outcome is AccessOutcome.IDENTITY_MISMATCH:
            logger.info('Rejected request to %s: credential does not match %r', request.url.path, email)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Forbidden')
        if decision.outcome is AccessOutcome.FORBIDDEN:
            logger.info('Rejected request to %s: role %s not allowed', request.url.path, decision.role)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Forbidden')

        return Caller(email=decision.identity, role=decision.role)

    return dependency


def ensure_owner_or_staff(caller: Caller, owner_email: str, db: Session) -> None:
    """Allow the owner of a document, or a Moderator/Admin, to act on it."""
    if caller.email == normalize_email(owner_email):
        return
    try:
        role = caller.role or resolve_role(db, caller.email)
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc
    if role not in STAFF.allowed_roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Forbidden')


def ensure_owner(caller: Caller, owner_email: str) -> None:
    if caller.email != normalize_email(owner_email):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Forbidden')
