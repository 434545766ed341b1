from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional


class UserBase(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(default=None, max_length=100)


class UserCreate(UserBase):
    password: str = Field(min_length=6)


class UserResponse(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserPreferences(BaseModel):
    dark_mode: bool = False
    auto_save: bool = True
    email_notifications: bool = True
    reminder_notifications: bool = False


class UserPreferencesUpdate(BaseModel):
    dark_mode: Optional[bool] = None
    auto_save: Optional[bool] = None
    email_notifications: Optional[bool] = None
    reminder_notifications: Optional[bool] = None
