from typing import Optional

from sqlmodel import SQLModel, Field


class Profile(SQLModel, table=True):
    id: str = Field(primary_key=True)
    email: str = Field(index=True)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str = "LEVEL_2"        # raw role, normalized by core.roles
    department: Optional[str] = None
    is_active: bool = True

    @property
    def full_name(self) -> str:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or self.email
