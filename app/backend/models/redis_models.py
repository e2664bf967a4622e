from pydantic import BaseModel, Field
from datetime import datetime
from uuid import UUID
from .db_models import Role


class SessionUser(BaseModel):
    """
    The slice of a User kept inside a session. Password hashes never go to Redis.
    """
    id: int
    username: str
    role: Role
    first_name: str
    last_name: str
    email: str


class UserSessionRedis(BaseModel):
    """
    Represents a user's session data stored in Redis.
    """
    user_data: SessionUser = Field(..., description="The authenticated identity the session belongs to.")
    session_id: UUID = Field(..., description="Unique ID for this specific session.")
    session_start_time: datetime = Field(..., description="The time this session began.")
    session_end_time: datetime = Field(..., description="The time this session will expire.")
