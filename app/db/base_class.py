# db/base_class.py
from datetime import datetime
from sqlalchemy import Column, DateTime, inspect
from sqlalchemy.orm import as_declarative


@as_declarative()
class Base:
    """Declarative base. Every model names its own table."""

    # Timestamps shared by every table
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        # Primary key only
        identity = inspect(self).identity or ()
        return f"<{type(self).__name__} {', '.join(str(v) for v in identity)}>"
