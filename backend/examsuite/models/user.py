"""User-related Pydantic models"""

from pydantic import BaseModel, ConfigDict
from typing import Optional


class User(BaseModel):
    model_config = ConfigDict(extra="ignore")
    user_id: str
    email: str
    name: str
    role: str = "student"  # teacher or student
    picture: Optional[str] = None
