# backend/perfume_chat/models/user_models.py

from pydantic import BaseModel, EmailStr, Field


# -------------------------
# Registration / login
# -------------------------
class RegisterIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)


class LoginIn(BaseModel):
    email: EmailStr
    password: str


# -------------------------
# Token response
# -------------------------
class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


# -------------------------
# Basic user info
# -------------------------
class MeOut(BaseModel):
    id: int
    email: str
    type: str
