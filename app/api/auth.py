"""Dashboard authentication and tenant access dependencies"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.models.user import User, UserRole
from app.models.restaurant import Restaurant
from app.schemas.auth import Token, RefreshRequest, UserResponse

logger = structlog.get_logger()

router = APIRouter()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

ACCESS = "access"
REFRESH = "refresh"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def _encode(claims: Dict[str, Any], token_type: str, lifetime: timedelta) -> str:
    payload = {**claims, "type": token_type, "exp": datetime.utcnow() + lifetime}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(user: User) -> str:
    """Short-lived token carrying the user's restaurant and role"""
    return _encode(
        {
            "sub": str(user.id),
            "tenant_id": str(user.tenant_id) if user.tenant_id else None,
            "role": user.role.value,
        },
        ACCESS,
        timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(user: User) -> str:
    return _encode({"sub": str(user.id)}, REFRESH, timedelta(days=settings.refresh_token_expire_days))


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str, expected_type: str) -> UUID:
    """User id from a token of the expected type, or 401"""
    detail = "Could not validate credentials" if expected_type == ACCESS else "Invalid refresh token"
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        user_id = payload.get("sub")
        if user_id is None or payload.get("type") != expected_type:
            raise _unauthorized(detail)
        return UUID(user_id)
    except (JWTError, ValueError):
        raise _unauthorized(detail)


async def _load_user(db: AsyncSession, user_id: UUID) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def _user_restaurant(db: AsyncSession, user: User) -> Optional[Restaurant]:
    if user.tenant_id is None:
        return None
    result = await db.execute(select(Restaurant).where(Restaurant.id == user.tenant_id))
    return result.scalar_one_or_none()


async def _can_sign_in(db: AsyncSession, user: User) -> bool:
    """Active user whose restaurant, if any, has not been deactivated"""
    if not user.is_active:
        return False
    if user.role == UserRole.SUPER_ADMIN or user.tenant_id is None:
        return True
    restaurant = await _user_restaurant(db, user)
    return restaurant is not None and restaurant.is_active


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    user_id = decode_token(token, ACCESS)
    user = await _load_user(db, user_id)

    if user is None or not await _can_sign_in(db, user):
        raise _unauthorized("Could not validate credentials")

    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    # kept as the single dependency routes declare; get_current_user already rejects disabled users
    return current_user


def require_role(required_role: UserRole):
    """Dependency factory for role-based access control"""
    async def role_checker(current_user: User = Depends(get_current_active_user)) -> User:
        if not current_user.has_permission(required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user
    return role_checker


async def verify_tenant_access(
    tenant_id: UUID,
    current_user: User = Depends(get_current_active_user),
) -> User:
    """Super admins reach every restaurant; everyone else only their own"""
    if current_user.role == UserRole.SUPER_ADMIN:
        return current_user

    if current_user.tenant_id != tenant_id:
        logger.warning(
            "Cross-tenant access denied",
            user_id=str(current_user.id),
            tenant_id=str(tenant_id),
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied to this tenant",
        )

    return current_user


async def get_tenant_restaurant(
    tenant_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> Restaurant:
    """Active restaurant addressed by the route, after checking the user may see it"""
    await verify_tenant_access(tenant_id, current_user)

    result = await db.execute(
        select(Restaurant).where(Restaurant.id == tenant_id, Restaurant.is_active == True)  # noqa: E712
    )
    restaurant = result.scalar_one_or_none()

    if not restaurant:
        raise HTTPException(status_code=404, detail="Restaurant not found")

    return restaurant


async def _issue_tokens(db: AsyncSession, user: User) -> Token:
    access_token = create_access_token(user)
    refresh_token = create_refresh_token(user)

    # single live refresh token per user; issuing a new one revokes the old
    user.refresh_token = refresh_token
    await db.commit()

    return Token(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.access_token_expire_minutes * 60,
    )


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """Exchange dashboard credentials for an access/refresh token pair"""
    email = form_data.username.strip().lower()
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(form_data.password, user.hashed_password):
        logger.info("Login failed", email=email)
        raise _unauthorized("Incorrect email or password")

    if not await _can_sign_in(db, user):
        logger.info("Login refused for disabled account", user_id=str(user.id), tenant_id=str(user.tenant_id))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is disabled",
        )

    user.last_login = datetime.utcnow()
    tokens = await _issue_tokens(db, user)

    logger.info("User logged in", user_id=str(user.id), role=user.role.value)
    return tokens


@router.post("/refresh", response_model=Token)
async def refresh_token(
    request: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    """Rotate the refresh token and issue a new access token"""
    user_id = decode_token(request.refresh_token, REFRESH)
    user = await _load_user(db, user_id)

    if not user or user.refresh_token != request.refresh_token or not await _can_sign_in(db, user):
        raise _unauthorized("Invalid refresh token")

    return await _issue_tokens(db, user)


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Signed-in user with the restaurant the dashboard should open"""
    restaurant = await _user_restaurant(db, current_user)
    response = UserResponse.model_validate(current_user)
    if restaurant:
        response.restaurant_name = restaurant.name
        response.restaurant_subdomain = restaurant.subdomain
    return response


@router.post("/logout")
async def logout(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    current_user.refresh_token = None
    await db.commit()
    logger.info("User logged out", user_id=str(current_user.id))
    return {"message": "Successfully logged out"}
