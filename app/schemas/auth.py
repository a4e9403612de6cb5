from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _required(value: Optional[str], message: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValueError(message)
    return text


class OtpRequest(CamelModel):
    phone_number: Optional[str] = Field(default=None, validate_default=True)

    @field_validator("phone_number", mode="before")
    @classmethod
    def _phone_required(cls, value):
        return _required(value, "Phone number is required")


class OtpVerificationRequest(CamelModel):
    phone_number: Optional[str] = Field(default=None, validate_default=True)
    otp: Optional[str] = Field(default=None, validate_default=True)

    @field_validator("phone_number", mode="before")
    @classmethod
    def _phone_required(cls, value):
        return _required(value, "Phone number is required")

    @field_validator("otp", mode="before")
    @classmethod
    def _otp_required(cls, value):
        return _required(value, "OTP is required")


class OtpChallenge(CamelModel):
    message: str
    phone_number: str
    expires_in: int
    dev_otp: Optional[str] = None


class UserSummary(CamelModel):
    id: UUID
    phone_number: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    status: str
    role: Optional[str] = None
    last_login_at: Optional[datetime] = None


class AuthenticationResult(CamelModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: UserSummary


class CurrentUser(CamelModel):
    user_id: UUID
    phone_number: str
    role: str
    user: Optional[UserSummary] = None
