from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from decimal import Decimal, InvalidOperation
import logging

from ..models.commission import Commission, COMMISSION_ROW_ID
from ..models.ride import Ride, RideStatus
from ..config import settings
from .exceptions import InvalidInputError, RideServiceError

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def to_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def compute_commission(fare_amount, percent) -> Decimal:
    """fare * percent / 100, exact (no rounding)"""
    return to_decimal(fare_amount) * to_decimal(percent) / Decimal(100)


class CommissionService:
    """Platform commission singleton and earnings roll-up"""

    async def get_singleton(self, db: AsyncSession) -> Commission:
        """Return the commission row, creating it on first access (not committed)"""
        commission = await db.get(Commission, COMMISSION_ROW_ID)
        if commission is None:
            commission = Commission(
                id=COMMISSION_ROW_ID,
                percent=to_decimal(settings.default_commission_percent),
            )
            db.add(commission)
            await db.flush()
            logger.info(f"Created commission singleton at {commission.percent}%")
        return commission

    async def get_percent(self, db: AsyncSession) -> Decimal:
        try:
            commission = await self.get_singleton(db)
            await db.commit()
            return to_decimal(commission.percent)
        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to read commission percent: {e}")
            raise

    async def set_percent(self, percent, db: AsyncSession) -> Decimal:
        if percent is None:
            raise InvalidInputError("percent is required")
        try:
            percent = to_decimal(percent)
        except (InvalidOperation, ValueError):
            raise InvalidInputError("percent must be a number")
        if not percent.is_finite() or percent < 0 or percent > 100:
            raise InvalidInputError("percent must be between 0 and 100")

        try:
            commission = await self.get_singleton(db)
            commission.percent = percent
            await db.commit()
            await db.refresh(commission)
            logger.info(f"Commission percent set to {percent}")
            return to_decimal(commission.percent)
        except RideServiceError:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to update commission percent: {e}")
            raise

    async def earnings_summary(self, db: AsyncSession) -> dict:
        """Totals over completed rides, using each ride's commission snapshot"""
        stmt = select(
            func.count(Ride.id),
            func.coalesce(func.sum(Ride.fare_amount), 0),
            func.coalesce(func.sum(Ride.commission_amount), 0),
        ).where(Ride.status == RideStatus.COMPLETED)
        completed, total_fare, total_commission = (await db.execute(stmt)).one()

        return {
            "completed_rides": completed,
            "total_fare": to_decimal(total_fare).quantize(CENTS),
            "total_commission": to_decimal(total_commission),
            "commission_percent": await self.get_percent(db),
        }
