"""
Declarative base for all models
"""
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def enum_type(enum_cls):
    """Store str-enums by value (e.g. 'in_progress') as VARCHAR on every dialect."""
    return SQLEnum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=32,
    )
