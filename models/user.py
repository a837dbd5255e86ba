#models/user.py
from __future__ import annotations
from pydantic import BaseModel, Field

from shared.identity import safe_email, profile_picture_file_name


class ChatAppUser(BaseModel):
    """A user being registered. Only the safe email ever reaches the database."""
    first_name: str
    last_name: str
    email_address: str

    @property
    def safe_email(self) -> str:
        return safe_email(self.email_address)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def profile_picture_file_name(self) -> str:
        # justinzhang321-gmail-com_profile_picture.png
        return profile_picture_file_name(self.email_address)


# --- Stored shapes ---
class UserRecord(BaseModel):
    first_name: str
    last_name: str


class DirectoryEntry(BaseModel):
    name: str
    email: str  # safe email


# --- Who is calling ---
class ChatSession(BaseModel):
    """
    Signed-in user context, passed into every accessor call.
    `email` may be raw or already safe; paths always use `safe_email`.
    """
    email: str = Field(min_length=1)
    name: str = ""

    @property
    def safe_email(self) -> str:
        return safe_email(self.email)
