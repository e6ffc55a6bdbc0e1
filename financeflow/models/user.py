"""User account records."""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class UserRecord(BaseModel):
    """A stored account. The password is only ever kept as a bcrypt hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    password_hash: str = Field(..., repr=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
