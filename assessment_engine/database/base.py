"""
assessment_engine/database/base.py
Shared column types + metadata naming convention

All models inherit from assessment_engine.models.base_model.BaseModel,
which is bound to the metadata defined here.
"""

from datetime import datetime
from typing import Annotated
import uuid

from sqlalchemy import MetaData, String, DateTime, func
from sqlalchemy.orm import mapped_column


# === Reusable column types ===

# UUID as string
str_pk = Annotated[
    str,
    mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
]

# Reference to an entity owned by an external collaborator (users, courses)
external_id = Annotated[
    str,
    mapped_column(String(64), nullable=False, index=True)
]

created_at_col = Annotated[
    datetime,
    mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
]

updated_at_col = Annotated[
    datetime,
    mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
]

metadata = MetaData(naming_convention={
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
})
