from typing import Optional

from pydantic import BaseModel

from app.models.user import GlobalRole


class UserOut(BaseModel):
    id: int
    full_name: Optional[str] = None
    email: str
    role: GlobalRole

    class Config:
        from_attributes = True
