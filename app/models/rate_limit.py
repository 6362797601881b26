"""RateLimitWindow SQLAlchemy model"""
from sqlalchemy import Column, Integer, String, Float, UniqueConstraint

from app.core.database import Base


class RateLimitWindow(Base):
    """
    Request counter for one (subject, endpoint) pair.

    Fields:
    - subject_key: ``ip:<address>`` or ``user:<id>``
    - endpoint: logical endpoint name (``global``, ``tokens-post``...)
    - count: admitted requests in the current window
    - window_start: epoch seconds at which the current window opened
    """

    __tablename__ = "rate_limit_windows"
    __table_args__ = (UniqueConstraint("subject_key", "endpoint", name="uq_rate_limit_subject_endpoint"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    subject_key = Column(String(255), nullable=False)
    endpoint = Column(String(64), nullable=False)
    count = Column(Integer, nullable=False, default=0)
    window_start = Column(Float, nullable=False)
