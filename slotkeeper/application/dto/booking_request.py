from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field, field_validator


class CommitBookingRequest(BaseModel):
    username: str = Field(min_length=1)
    event_slug: str = Field(min_length=1)
    starts_at: str
    timezone: str = "UTC"
    invitee_name: str = Field(min_length=1, max_length=120)
    invitee_email: EmailStr
    answers: dict[str, str] = Field(default_factory=dict)

    @field_validator("invitee_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("invitee_email", mode="before")
    @classmethod
    def _strip_email(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("invitee_email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return value.lower()


class RescheduleBookingRequest(BaseModel):
    starts_at: str
    timezone: str | None = None


class CancelBookingRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)
