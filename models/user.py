from typing import Optional

from pydantic import BaseModel


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None


class UserOut(BaseModel):
    id: str
    email: str
    name: Optional[str] = None


class SessionOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: int
