from datetime import datetime

from sqlalchemy.orm import DeclarativeBase

from portal.db.types import TZDateTime


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    type_annotation_map = {
        datetime: TZDateTime(),
    }
