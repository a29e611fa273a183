# backend/perfume_chat/api/routes_auth.py

from fastapi import APIRouter, Header
from typing import Optional
from uuid import uuid4

from perfume_chat.core.errors import ChatError
from perfume_chat.core.security import (
    get_password_hash,
    verify_password,
    create_access_token,
    get_session,
)
from perfume_chat.db.sqlite_memory import SQLiteMemory
from perfume_chat.models.user_models import LoginIn, MeOut, RegisterIn, TokenOut

router = APIRouter(prefix="/auth", tags=["auth"])
db = SQLiteMemory()


# --------------------------
# REGISTER
# --------------------------
@router.post("/register", response_model=TokenOut)
def register(data: RegisterIn):
    if db.get_user_by_email(data.email):
        raise ChatError("bad_request:auth", cause="Email already registered")

    user_id = db.create_user(email=data.email, hashed_password=get_password_hash(data.password))
    return {"access_token": create_access_token(subject=str(user_id), user_type="regular")}


# --------------------------
# LOGIN
# --------------------------
@router.post("/login", response_model=TokenOut)
def login(data: LoginIn):
    user = db.get_user_by_email(data.email)
    if not user or not user["hashed_password"] or not verify_password(data.password, user["hashed_password"]):
        raise ChatError("unauthorized:auth", cause="Invalid credentials")

    return {"access_token": create_access_token(subject=str(user["id"]), user_type=user["user_type"])}


# --------------------------
# GUEST
# --------------------------
@router.post("/guest", response_model=TokenOut)
def guest():
    user_id = db.create_user(email=f"guest-{uuid4().hex}", hashed_password=None, user_type="guest")
    return {"access_token": create_access_token(subject=str(user_id), user_type="guest")}


# --------------------------
# ME
# --------------------------
@router.get("/me", response_model=MeOut)
def me(authorization: Optional[str] = Header(None)):
    session = get_session(authorization)
    if not session:
        raise ChatError("unauthorized:auth")

    user = db.get_user_by_id(session.user.id)
    if not user:
        raise ChatError("not_found:auth", cause="User not found")

    return {"id": user["id"], "email": user["email"], "type": user["user_type"]}
