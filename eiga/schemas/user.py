from pydantic import BaseModel, ConfigDict, EmailStr, field_validator


class UserPublic(BaseModel):
    id: int
    email: EmailStr
    username: str
    role: str

    model_config = ConfigDict(from_attributes=True)


class MagicLinkRequest(BaseModel):
    email: EmailStr
    callbackUrl: str | None = None
    website: str = ""  # honeypot

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("website")
    @classmethod
    def _honeypot(cls, v: str) -> str:
        if v:
            raise ValueError("Bot detected")
        return v
