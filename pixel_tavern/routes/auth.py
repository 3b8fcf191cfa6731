"""
Account endpoints: login, registration, profile and password change.
"""
from fastapi import APIRouter

from pixel_tavern.errors import AuthenticationError
from pixel_tavern.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
    UserOut,
)
from pixel_tavern.services import accounts


router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login")
async def login(request: LoginRequest):
    user = accounts.verify_user(request.username, request.password)
    if user is None:
        raise AuthenticationError("Invalid credentials")

    return AuthResponse(message="Login successful", user=UserOut.model_validate(user)).to_wire()


@router.post("/register", status_code=201)
async def register(request: RegisterRequest):
    """
    Create an account with a password.

    409 when the username or email is already in use.
    """
    user = accounts.register_user(
        request.username,
        request.password,
        email=request.email,
        avatar=request.avatar,
    )
    return AuthResponse(message="User registered successfully", user=UserOut.model_validate(user)).to_wire()


@router.get("/profile/{user_id}")
async def profile(user_id: int):
    user = accounts.require_user(user_id)
    return {"user": UserOut.model_validate(user).to_wire()}


@router.post("/change-password/{user_id}")
async def change_password(user_id: int, request: ChangePasswordRequest):
    if not accounts.change_password(user_id, request.current_password, request.new_password):
        raise AuthenticationError("Current password is incorrect")

    return {"message": "Password updated successfully"}
