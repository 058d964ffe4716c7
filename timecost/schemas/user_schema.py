from typing import Optional

from pydantic import BaseModel


class UserProfile(BaseModel):
    id: str
    display_name: str
    email: str = ""
    monthly_salary: float = 0.0
    profile_image: Optional[str] = None
    position: Optional[str] = None
