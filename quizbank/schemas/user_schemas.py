from pydantic import BaseModel
from typing import Optional

class User(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None
    role: str = "student"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class UpdateProfileRequest(BaseModel):
    full_name: str


class ProfileResponse(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None
    role: str
