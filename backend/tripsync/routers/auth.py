from typing import Annotated

from fastapi import APIRouter, Body, Depends, HTTPException

from ..config import settings
from ..deps import SessionDep, get_current_username
from ..errors import AuthFailed
from ..models.models import (AuthParams, LoginRegisterModel, Token, User,
                             UserRead)
from ..security import (create_access_token, create_tokens, decode_token,
                        hash_password, verify_password)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/params", response_model=AuthParams)
def auth_params() -> AuthParams:
    return AuthParams(register_enabled=settings.REGISTER_ENABLE)


@router.post("/login", response_model=Token)
def login(req: LoginRegisterModel, session: SessionDep) -> Token:
    db_user = session.get(User, req.username)
    if not db_user or not verify_password(req.password, db_user.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return create_tokens(data={"sub": db_user.username})


@router.post("/register", response_model=Token)
def register(req: LoginRegisterModel, session: SessionDep) -> Token:
    if not settings.REGISTER_ENABLE:
        raise HTTPException(status_code=400, detail="Registration disabled")

    db_user = session.get(User, req.username)
    if db_user:
        raise HTTPException(status_code=409, detail="The resource already exists")

    new_user = User(username=req.username, password=hash_password(req.password))
    session.add(new_user)
    session.commit()

    return create_tokens(data={"sub": new_user.username})


@router.post("/refresh")
def refresh_token(session: SessionDep, refresh_token: str = Body(..., embed=True)) -> dict:
    username = decode_token(refresh_token, kind="refresh")
    if not session.get(User, username):
        raise AuthFailed()

    return {"access_token": create_access_token(data={"sub": username})}


@router.get("/me", response_model=UserRead)
def read_me(session: SessionDep, current_user: Annotated[str, Depends(get_current_username)]) -> UserRead:
    return UserRead.serialize(session.get(User, current_user))
