from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import List, Optional
from patentflow.models.user import Role


# Shared properties
class UserBase(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    roles: Optional[List[Role]] = None


# Properties to receive via API on creation
class UserCreate(UserBase):
    email: EmailStr
    name: str = Field(min_length=1)
    password: str = Field(min_length=8)
    roles: List[Role] = Field(min_length=1)


# Properties to receive via API on update
class UserUpdate(UserBase):
    password: Optional[str] = Field(default=None, min_length=8)
    roles: Optional[List[Role]] = Field(default=None, min_length=1)


# Properties to return to client (the password hash never leaves the server)
class UserRead(UserBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    roles: List[Role]
    created_at: Optional[str] = None


class BulkUserError(BaseModel):
    email: str
    error: str


class BulkUserResult(BaseModel):
    added_count: int
    errors: List[BulkUserError]
