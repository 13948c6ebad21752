# sppbilling/schemas/auth.py

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class LoginRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=6, max_length=128)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int          # seconds
    user: "UserProfile"


class MenuEntry(BaseModel):
    key: str                 # "billing"
    label: str               # "Tagihan"
    path: str                # "/billing"


class UserProfile(BaseModel):
    id: str
    username: str
    name: str
    email: str
    role: str
    institution: str
    last_login: Optional[datetime] = None
    menu: List[MenuEntry] = []


class RefreshRequest(BaseModel):
    refresh_token: str


# Update forward ref
TokenResponse.model_rebuild()
