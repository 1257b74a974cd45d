import logging
from datetime import timedelta
from fastapi import APIRouter, Depends, Request, status

from vendorconnect.auth.models import CurrentUser, UserDB
from vendorconnect.auth.repository import UserRepository
from vendorconnect.auth.schemas import (
    PasswordChange, ProfileUpdate, RefreshTokenRequest, Token, UserLogin, UserRegister, UserResponse
)
from vendorconnect.deps import get_current_user, get_user_repository
from vendorconnect.shared.security_config import limiter
from vendorconnect.shared.utils import (
    NotFoundException, SuccessResponse, UnauthorizedException, ValidationException,
    create_access_token, create_refresh_token, get_password_hash, settings,
    verify_password, verify_refresh_token,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

def issue_tokens(user_id: str, role: str) -> Token:
    claims = {"sub": user_id, "role": role}
    access_token = create_access_token(
        data=claims,
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    refresh_token = create_refresh_token(data=claims)
    return Token(access_token=access_token, refresh_token=refresh_token, token_type="bearer")

@router.post("/register", response_model=SuccessResponse[UserResponse], status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def register(
    user: UserRegister,
    request: Request,
    users: UserRepository = Depends(get_user_repository),
):
    if await users.find_by_email(user.email):
        raise ValidationException("User already exists with this email")

    user_db = UserDB(
        password_hash=get_password_hash(user.password),
        **user.model_dump(exclude={"password"}),
    )
    created = await users.insert(user_db)
    logger.info("User registered", extra={"user_id": created.id})
    return SuccessResponse(data=UserResponse.from_db(created), message="User registered successfully")

@router.post("/login", response_model=SuccessResponse[Token])
@limiter.limit("5/minute")
async def login(
    user_credentials: UserLogin,
    request: Request,
    users: UserRepository = Depends(get_user_repository),
):
    user = await users.find_by_email(user_credentials.email)
    if not user or not verify_password(user_credentials.password, user.password_hash):
        raise UnauthorizedException("Incorrect email or password")
    if not user.is_active:
        raise UnauthorizedException("User account is inactive")

    return SuccessResponse(data=issue_tokens(user.id, user.role.value))

@router.post("/refresh", response_model=SuccessResponse[Token])
async def refresh_token(request: RefreshTokenRequest):
    payload = verify_refresh_token(request.refresh_token)
    return SuccessResponse(data=issue_tokens(payload["sub"], payload["role"]))

@router.get("/me", response_model=SuccessResponse[UserResponse])
async def me(
    current: CurrentUser = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repository),
):
    user = await users.get(current.user_id)
    if not user:
        raise NotFoundException("User not found")
    return SuccessResponse(data=UserResponse.from_db(user))

@router.put("/profile", response_model=SuccessResponse[UserResponse])
async def update_profile(
    update: ProfileUpdate,
    current: CurrentUser = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repository),
):
    user = await users.update_profile(current.user_id, update.model_dump(exclude_none=True))
    if not user:
        raise NotFoundException("User not found")
    logger.info("Profile updated", extra={"user_id": user.id})
    return SuccessResponse(data=UserResponse.from_db(user), message="Profile updated successfully")

@router.put("/change-password", response_model=SuccessResponse[dict])
@limiter.limit("5/minute")
async def change_password(
    body: PasswordChange,
    request: Request,
    current: CurrentUser = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repository),
):
    user = await users.get(current.user_id)
    if not user:
        raise NotFoundException("User not found")
    if not verify_password(body.current_password, user.password_hash):
        raise ValidationException("Current password is incorrect")

    await users.set_password_hash(user.id, get_password_hash(body.new_password))
    logger.info("Password changed", extra={"user_id": user.id})
    return SuccessResponse(message="Password changed successfully")
