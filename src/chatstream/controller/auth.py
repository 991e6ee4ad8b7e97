from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from chatstream.core.db import get_db
from chatstream.dto.auth import TokenResponse
from chatstream.dto.user import UserLogin, UserOut, UserRegister
from chatstream.repository.user_repository import UserRepository
from chatstream.security.deps import CurrentUser, get_current_user
from chatstream.security.jwt_tokens import create_access_token
from chatstream.services.user_services import UserService


router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def signup(payload: UserRegister, db: AsyncSession = Depends(get_db)):
    user = await UserService(db=db).register(payload)
    return TokenResponse(
        access_token=create_access_token(sub=str(user.id)),
        user=UserOut.model_validate(user),
    )


@router.post("/signin", response_model=TokenResponse)
async def signin(payload: UserLogin, db: AsyncSession = Depends(get_db)):
    user = await UserService(db=db).authenticate_user(payload)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    return TokenResponse(
        access_token=create_access_token(sub=str(user.id)),
        user=UserOut.model_validate(user),
    )


@router.get("/me", response_model=UserOut)
async def me(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await UserRepository(db).get_by_id(current_user.id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserOut.model_validate(user)
