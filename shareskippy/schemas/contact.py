"""Pydantic schemas for contact form submissions."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

ContactCategory = Literal["general", "bug", "safety", "feature", "account", "other"]


class ContactRequest(BaseModel):
    """Contact form payload."""

    name: str = Field(..., min_length=2, description="Sender name (at least 2 characters).")
    email: str = Field(
        ...,
        pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$",
        description="Sender email address used as reply-to.",
    )
    category: ContactCategory = Field(..., description="Topic of the message.")
    subject: str = Field(..., min_length=3, description="Subject line (at least 3 characters).")
    message: str = Field(
        ...,
        min_length=5,
        max_length=2000,
        description="Message body (5 to 2000 characters).",
    )
    hp: str | None = Field(
        default=None,
        description="Honeypot field; must stay empty for human submissions.",
    )

    @property
    def is_bot(self) -> bool:
        return bool(self.hp and self.hp.strip())


class ContactResponse(BaseModel):
    """Outcome of a contact form submission."""

    ok: bool = Field(..., description="Whether the submission was accepted.")
