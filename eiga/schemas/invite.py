from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from eiga.schemas.common import Booleanish
from eiga.services.invites import MAX_BATCH, MAX_EXPIRY_DAYS
from eiga.services.validation import (
    USERNAME_RE,
    is_valid_invite_format,
    normalize_invite_code,
)


def _check_code(v: str) -> str:
    code = normalize_invite_code(v)
    if not is_valid_invite_format(code):
        raise ValueError("Invalid invite code")
    return code


class InviteCodeRequest(BaseModel):
    code: str

    @field_validator("code")
    @classmethod
    def _code(cls, v: str) -> str:
        return _check_code(v)


class RedeemInviteRequest(BaseModel):
    # format is checked by InviteLedger.redeem
    code: str
    email: EmailStr
    username: str
    conduct: Booleanish = False
    website: str = ""  # honeypot, must stay empty

    @field_validator("code")
    @classmethod
    def _code(cls, v: str) -> str:
        return normalize_invite_code(v)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("username")
    @classmethod
    def _username(cls, v: str) -> str:
        v = v.strip()
        if not USERNAME_RE.match(v):
            raise ValueError("3-20 chars, letters/numbers/underscore only")
        return v

    @field_validator("conduct")
    @classmethod
    def _conduct(cls, v: bool) -> bool:
        if v is not True:
            raise ValueError("You must agree to the code of conduct.")
        return v

    @field_validator("website")
    @classmethod
    def _honeypot(cls, v: str) -> str:
        if v:
            raise ValueError("Bot detected")
        return v


class InviteCreateRequest(BaseModel):
    quantity: int = Field(ge=1, le=MAX_BATCH)
    expires_in_days: int = Field(default=14, ge=1, le=MAX_EXPIRY_DAYS)


class InviteSendRequest(BaseModel):
    to_email: EmailStr
    expires_in_days: int = Field(default=14, ge=1, le=MAX_EXPIRY_DAYS)
    website: str = ""  # honeypot

    @field_validator("to_email")
    @classmethod
    def _email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("website")
    @classmethod
    def _honeypot(cls, v: str) -> str:
        if v:
            raise ValueError("Bot detected")
        return v


class InviteExtendRequest(InviteCodeRequest):
    extend_days: int = Field(ge=1, le=MAX_EXPIRY_DAYS)


class InvitePublic(BaseModel):
    code: str
    created_by: int | None
    used_by: int | None
    created_at: datetime
    used_at: datetime | None
    expires_at: datetime

    model_config = ConfigDict(from_attributes=True)
