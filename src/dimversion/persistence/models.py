"""
Single-table schema: every version of every dimension member lives here.
"""

import datetime as dt

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# SQLite only autoincrements INTEGER PRIMARY KEY columns
SurrogateId = BigInteger().with_variant(Integer, "sqlite")


def now_utc() -> dt.datetime:  # compact timezone‑aware timestamp
    return dt.datetime.now(tz=dt.timezone.utc)


class VersionRow(Base):
    """Single table that stores **all** dimension versions."""

    __tablename__ = "dimension_versions"

    surrogate_id = Column(SurrogateId, primary_key=True, autoincrement=True)
    dimension = Column(String, nullable=False)
    natural_key = Column(String, nullable=False)
    attributes = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    valid_from = Column(DateTime, nullable=False)
    valid_to = Column(DateTime, nullable=True)
    is_current = Column(Boolean, nullable=False, default=True)
    current_pointer = Column(SurrogateId, nullable=True, index=True)
    recorded_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        Index("ix_dimension_versions_key", "dimension", "natural_key", "valid_from"),
        # at most one current version per natural key
        Index(
            "uq_dimension_versions_current",
            "dimension",
            "natural_key",
            unique=True,
            sqlite_where=text("is_current"),
            postgresql_where=text("is_current"),
        ),
        {"sqlite_autoincrement": True},
    )
