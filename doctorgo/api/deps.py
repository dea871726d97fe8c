from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List
from datetime import datetime

from ..core.config import settings
from ..core.database import get_db, get_redis
from ..core.security import (
    security, verify_token, AuthenticationError,
    AuthorizationError, UserRole, TokenPayload
)
from ..models.user import User

async def get_current_user_token(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    token = credentials.credentials

    # Verify token
    token_payload = verify_token(token)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")

    # Check if token is access token
    if token_payload.token_type != "access":
        raise AuthenticationError("Invalid token type")

    return token_payload

def get_current_user(
    token_payload: TokenPayload = Depends(get_current_user_token),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the principal, provisioning or updating it from token claims."""
    if not token_payload.sub:
        raise AuthenticationError("Invalid token payload")

    try:
        role = UserRole(token_payload.role or UserRole.PATIENT.value)
    except ValueError:
        raise AuthenticationError("Unknown role in token")

    user = db.query(User).filter(User.external_id == token_payload.sub).first()
    if not user:
        user = User(
            external_id=token_payload.sub,
            email=token_payload.email,
            full_name=token_payload.name,
            role=role,
            is_active=True
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # A concurrent request provisioned the same subject first
            db.rollback()
            user = db.query(User).filter(User.external_id == token_payload.sub).first()

    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    # The identity provider is authoritative for profile claims
    user.role = role
    if token_payload.email:
        user.email = token_payload.email
    if token_payload.name:
        user.full_name = token_payload.name

    user.last_seen = datetime.now()
    db.commit()
    db.refresh(user)

    return user

# Role-based access control dependencies
def require_role(allowed_roles: List[UserRole]):
    """Create a dependency that requires specific user roles."""
    def role_checker(
        current_user: User = Depends(get_current_user)
    ) -> User:
        if current_user.role not in allowed_roles:
            raise AuthorizationError(
                f"Access denied. Required roles: {[role.value for role in allowed_roles]}"
            )
        return current_user

    return role_checker

def get_admin_user(
    current_user: User = Depends(require_role([UserRole.ADMIN]))
) -> User:
    """Require admin role."""
    return current_user

def get_clinic_staff_user(
    current_user: User = Depends(
        require_role([UserRole.DOCTOR, UserRole.SECRETARY, UserRole.ADMIN])
    )
) -> User:
    """Require doctor, secretary or admin role."""
    return current_user

# Rate limiting dependency
def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis)
) -> None:
    """Fixed-window rate limit per client and path for booking endpoints."""
    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{request.url.path}:{client_ip}"

    current_requests = redis_client.get(key)
    if current_requests is None:
        redis_client.setex(key, settings.RATE_LIMIT_WINDOW_SECONDS, 1)
    else:
        if int(current_requests) >= settings.RATE_LIMIT_REQUESTS:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later."
            )
        redis_client.incr(key)
