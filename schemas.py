from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime


# Request bodies. Fields are optional here so that a missing field reaches
# the domain layer and is reported as MissingField.

class UserCreate(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None

class UserLogin(BaseModel):
    username: Optional[str] = None  # username or email
    password: Optional[str] = None

class TaskCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    completed: Optional[bool] = None


# Response bodies

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str

class DebugUserOut(UserOut):
    has_password: bool = Field(serialization_alias="hasPassword")

class AuthOut(BaseModel):
    token: str
    user: UserOut

class TaskOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    completed: bool
    created_at: datetime = Field(serialization_alias="createdAt")
    user_id: int = Field(serialization_alias="userId")
