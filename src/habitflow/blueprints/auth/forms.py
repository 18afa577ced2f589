"""Registration, login and profile payloads."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...services.auth import MIN_PASSWORD_LENGTH
from ...timeutil import is_valid_timezone


def _check_timezone(value: Optional[str]) -> Optional[str]:
    if value is not None and not is_valid_timezone(value):
        raise ValueError(f"Unknown timezone: {value}")
    return value


class RegisterForm(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(max_length=255)
    password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=128)
    name: Optional[str] = Field(default=None, max_length=80)
    timezone: Optional[str] = Field(default=None, max_length=64)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        local, _, domain = value.partition("@")
        if not local or "." not in domain:
            raise ValueError("Please provide a valid email address.")
        return value.lower()

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: Optional[str]) -> Optional[str]:
        return _check_timezone(value)


class LoginForm(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str
    password: str


class ProfileForm(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, max_length=80)
    timezone: Optional[str] = Field(default=None, max_length=64)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: Optional[str]) -> Optional[str]:
        return _check_timezone(value)


__all__ = ["LoginForm", "ProfileForm", "RegisterForm"]
