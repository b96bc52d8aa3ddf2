from typing import List, Optional

from pydantic import BaseModel, Field


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for authorization checks."""

    user_id: str
    user_name: str
    role: str
    job_level: int
    dept_code: Optional[str] = None
    permissions: List[str] = Field(default_factory=list)
