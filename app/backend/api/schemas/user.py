# app/backend/api/schemas/user.py
from pydantic import BaseModel, Field
from typing import Optional

from ...models.db_models import DomainModel, Role, UserProfile


class LoginRequest(BaseModel):
    username: str
    password: str

class Token(BaseModel):
    # OAuth2 field names, kept snake_case on the wire
    access_token: str
    token_type: str = "bearer"

class LoginResponse(DomainModel):
    token: Token
    profile: UserProfile

# Internal representation of JWT data
class TokenData(BaseModel):
    user_id: Optional[int] = None
    sid: Optional[str] = None


# --- Admin account management ---

class UserCreateRequest(DomainModel):
    username: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    role: Role = Role.STUDENT
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: Optional[str] = None

class UserActiveRequest(DomainModel):
    is_active: bool
