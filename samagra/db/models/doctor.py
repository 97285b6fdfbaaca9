# samagra/db/models/doctor.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime

from .appointment import utcnow


class Doctor(SQLModel, table=True):
    __tablename__ = "doctors"
    # uid issued by the identity provider
    id: str = Field(primary_key=True, max_length=128)
    name: str = Field(max_length=100)
    email: Optional[str] = Field(default=None, max_length=100)
    specialization: Optional[str] = Field(default=None, max_length=100)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
