"""Auth request/response schemas."""
from uuid import UUID

from pydantic import BaseModel, Field


class SignInRequest(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1)


class UserInfo(BaseModel):
    id: UUID
    username: str | None = None
    email: str | None = None
    name: str = ""
    picture: str | None = None

    model_config = {"from_attributes": True}
