from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, SecretStr


class PasswordForgotIn(BaseModel):
    email: EmailStr


class PasswordSetupIn(BaseModel):
    email: EmailStr
    purpose: Literal["admin_password_setup", "admin_password_reset"] = (
        "admin_password_setup"
    )


class PasswordResetIn(BaseModel):
    token: SecretStr
    password: SecretStr


class PasswordTokenUser(BaseModel):
    email: EmailStr
    first_name: str
    last_name: str
    role: str


class PasswordTokenOut(BaseModel):
    valid: bool = True
    user: PasswordTokenUser
    token_type: str
    expires_at: datetime


class PasswordSetOut(BaseModel):
    success: bool = True
    message: str
    token_type: str
