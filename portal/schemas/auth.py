"""Pydantic schemas for authentication endpoints.

Request fields are optional so that missing and empty values both reach the
account manager and come back as the same validation error.
"""

from pydantic import BaseModel


class RegisterRequest(BaseModel):
    email: str | None = None
    password: str | None = None
    name: str | None = None


class RegisterResponse(BaseModel):
    id: int
    email: str
    message: str


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class LoginResponse(BaseModel):
    id: int
    email: str
    name: str


class AccountResponse(BaseModel):
    id: int
    email: str
    name: str
    is_admin: bool


class ForgotPasswordRequest(BaseModel):
    email: str | None = None


class ResetPasswordRequest(BaseModel):
    token: str | None = None
    new_password: str | None = None


class MessageResponse(BaseModel):
    message: str


class OkResponse(BaseModel):
    ok: bool = True
