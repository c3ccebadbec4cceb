import uuid

from sqlalchemy import Column, ForeignKey, Text, func
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import relationship

from baboo_api.database import Base


class Inquiry(Base):
    __tablename__ = "inquiries"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_name = Column(Text, nullable=False)
    customer_email = Column(Text, nullable=False)
    customer_phone = Column(Text)
    message = Column(Text, nullable=False)
    conversation_sid = Column(Text, unique=True)
    dm_conversation_sid = Column(Text)
    assigned_expert_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    status = Column(Text, nullable=False, default="assigned")  # new, assigned, in_progress, resolved
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    assigned_expert = relationship("User")
