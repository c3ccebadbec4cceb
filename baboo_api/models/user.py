import uuid

from sqlalchemy import Column, Text, func
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

from baboo_api.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(Text, nullable=False, unique=True)
    name = Column(Text)
    role = Column(Text, nullable=False, default="expert")  # admin, expert
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
