from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field

from .common import timestamp_field


class AppSetting(SQLModel, table=True):
    key: str = Field(primary_key=True)
    value: Any = Field(default=None, sa_column=Column(JSON))
    updated_by: Optional[str] = None
    updated_at: datetime = timestamp_field()
