from sqlalchemy import Column, String, TIMESTAMP, Uuid
import uuid
from ..database import Base, utcnow


class Shipper(Base):
    """Shipper identity as mirrored from the identity provider"""

    __tablename__ = "shippers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    phone = Column(String(30), nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Shipper(id={self.id}, name={self.name})>"
