"""Authentication schemas."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class UserResponse(BaseModel):
    """Caller identity decoded from an access token."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    role: str
