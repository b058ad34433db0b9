from sqlalchemy import Column, DateTime, Float, Integer, String
from sqlalchemy.sql import func

from cryptopulse.models.base import Base


class RiskLimitsRecord(Base):
    __tablename__ = "risk_limits"

    user_id = Column(String(64), primary_key=True)

    max_concurrent_trades = Column(Integer, nullable=False)
    max_daily_trades = Column(Integer, nullable=False)
    max_drawdown = Column(Float, nullable=False)
    max_daily_loss = Column(Float, nullable=False)
    risk_per_trade = Column(Float, nullable=False)
    max_position_size = Column(Float, nullable=False)
    leverage = Column(Float, nullable=False, default=1.0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
