"""User schemas."""
from pydantic import BaseModel, ConfigDict, EmailStr


class UserBase(BaseModel):
    email: EmailStr
    full_name: str


class UserResponse(UserBase):
    user_id: int
    role: str

    model_config = ConfigDict(from_attributes=True)


class UserSummary(BaseModel):
    user_id: int
    full_name: str

    model_config = ConfigDict(from_attributes=True)
