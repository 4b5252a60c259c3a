from sqlalchemy import Column, DECIMAL, Integer, TIMESTAMP, CheckConstraint
from ..database import Base, utcnow

# The platform commission is a single well-known row
COMMISSION_ROW_ID = 1


class Commission(Base):
    __tablename__ = "commission"

    id = Column(Integer, primary_key=True, default=COMMISSION_ROW_ID)
    percent = Column(DECIMAL(5, 2), nullable=False, default=0)

    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("percent >= 0 AND percent <= 100", name="chk_commission_percent_range"),
    )

    def __repr__(self):
        return f"<Commission(percent={self.percent})>"
