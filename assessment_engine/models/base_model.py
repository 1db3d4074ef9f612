"""
assessment_engine/models/base_model.py
Base model class – all SQLAlchemy models inherit from this

Features:
- created_at / updated_at timestamps
- snapshot() for lifecycle diffs
- to_dict() for serialization
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, ClassVar, Dict, FrozenSet, Optional

from sqlalchemy.orm import DeclarativeBase, Mapped

from assessment_engine.database.base import metadata as shared_metadata, created_at_col, updated_at_col


class BaseModel(DeclarativeBase):
    """
    All models inherit from this class
    Provides common fields and utility methods
    """
    metadata = shared_metadata

    # Columns tracked by the lifecycle guard; bookkeeping columns are excluded
    guarded_fields: ClassVar[FrozenSet[str]] = frozenset()

    created_at: Mapped[created_at_col]
    updated_at: Mapped[updated_at_col]

    def __repr__(self) -> str:
        pk = ",".join(str(getattr(self, c.key)) for c in self.__table__.primary_key.columns)
        return f"<{self.__class__.__name__} {pk}>"

    def snapshot(self) -> Dict[str, Any]:
        """Plain-dict copy of the guarded columns (the 'before' value of a write)"""
        data = {}
        for key in self.guarded_fields:
            value = getattr(self, key)
            if isinstance(value, list):
                value = [dict(v) if isinstance(v, dict) else v for v in value]
            data[key] = value
        return data

    def apply(self, fields: Dict[str, Any]) -> None:
        """Set guarded columns from a dict; unknown keys are rejected upstream"""
        for key, value in fields.items():
            setattr(self, key, value)

    def to_dict(self, exclude: Optional[set[str]] = None) -> Dict[str, Any]:
        """
        Convert model instance to dictionary
        Safe for JSON serialization (handles datetime, UUID)
        """
        exclude = exclude or set()
        data = {}
        for column in self.__table__.columns:
            key = column.key
            if key in exclude:
                continue
            value = getattr(self, key)

            if isinstance(value, datetime):
                data[key] = value.isoformat()
            elif isinstance(value, uuid.UUID):
                data[key] = str(value)
            else:
                data[key] = value

        return data
