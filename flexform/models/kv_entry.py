from typing import Any
from sqlalchemy import String, JSON
from sqlalchemy.orm import Mapped, mapped_column
from flexform.db.session import Base
from flexform.models.common import TimestampMixin

class KeyValueEntry(Base, TimestampMixin):
    __tablename__ = "kv_entries"
    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
