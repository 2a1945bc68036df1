# src/brewhub_dm/models/rate.py
"""Durable fixed-window rate-limit counters."""

from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from brewhub_dm.db.session import Base


class RateLimitCounter(Base):
    """Counter for one composite key; a new window overwrites the row."""

    __tablename__ = "rate_limit_counters"

    # "<scope>:<route>:<identifier>"
    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    window_start_ms: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
