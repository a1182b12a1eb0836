import re
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Literal, Optional

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]+$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class CamelModel(BaseModel):
    # accepts both securityWord and security_word
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserRegister(CamelModel):
    username: str = Field(min_length=3, max_length=30)
    email: str
    password: str = Field(min_length=6)
    security_word: str = Field(min_length=2, max_length=50)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        v = v.strip()
        if not USERNAME_RE.match(v):
            raise ValueError("Username may only contain letters, numbers and underscores")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not EMAIL_RE.match(v):
            raise ValueError("Valid email is required")
        return v

    @field_validator("security_word")
    @classmethod
    def validate_security_word(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Security word is required")
        return v.strip()


class UserLogin(CamelModel):
    email_or_username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class PasswordReset(CamelModel):
    email_or_username: str = Field(min_length=1)
    security_word: str = Field(min_length=2, max_length=50)
    new_password: str = Field(min_length=6)
    confirm_password: str = Field(min_length=6)


class PreferencesUpdate(CamelModel):
    theme: Optional[Literal["light", "dark", "auto"]] = None
    items_per_page: Optional[int] = Field(None, ge=10, le=100)
    display_name: Optional[str] = Field(None, max_length=50)
    profile_public: Optional[bool] = None
    lists_public: Optional[bool] = None


class AuthResponse(BaseModel):
    message: Optional[str] = None
    token: str
    user: dict
