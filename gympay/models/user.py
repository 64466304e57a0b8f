from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, String

from gympay.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    contact_no = Column(String, nullable=True)
    role = Column(String, nullable=False, default="member")  # member / staff / admin
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
