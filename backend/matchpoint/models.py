from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.sql import func

from .db import Base


class KeyValueEntry(Base):
    __tablename__ = "kv_entry"
    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
