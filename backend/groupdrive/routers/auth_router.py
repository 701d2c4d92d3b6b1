from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from groupdrive.core.config import settings
from groupdrive.core.security import get_current_user
from groupdrive.models.base import User
from groupdrive.schemas.user_schemas import UserCreate, UserLogin, UserResponse
from groupdrive.services.auth_service import authenticate_user, register_new_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login")
def login(form_data: UserLogin):
    access_token = authenticate_user(form_data.email, form_data.password)
    content = {
        "message": "You've successfully logged in. Welcome back!",
        "access_token": access_token,
        "token_type": "bearer",
    }
    response = JSONResponse(content=content)
    response.set_cookie(
        "Authorization",
        value=f"Bearer {access_token}",
        httponly=True,
        max_age=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        expires=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        samesite="none" if settings.IS_PRODUCTION else "lax",
        secure=settings.IS_PRODUCTION,
    )
    return response


@router.post("/logout")
def logout():
    response = JSONResponse(content={"message": "Logged out"})
    response.delete_cookie("Authorization")
    return response


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(user: UserCreate):
    db_user = register_new_user(user)
    return UserResponse.model_validate(db_user.to_response_dict())


@router.get("/profile", response_model=UserResponse)
def profile(current_user: User = Depends(get_current_user)):
    return UserResponse.model_validate(current_user.to_response_dict())
