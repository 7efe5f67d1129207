"""
Weight service for the alert engine.

PURPOSE: Maintain the available-alert catalogue, i.e. the weight each
(indicator, trigger) pair contributes to a score, and feed it to the
configuration snapshot. Edits take effect on the next snapshot refresh.

CALLED BY: available-alert routes, ConfigSnapshotLoader (via main.py), seeding
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from alertengine.config.constants import DEFAULT_ALERT_WEIGHTS
from alertengine.models.available_alert import AvailableAlert
from alertengine.schemas.available_alert import (
    AvailableAlertCreate,
    AvailableAlertResponse,
    AvailableAlertUpdate,
)
from alertengine.utils.logger import get_logger


logger = get_logger("services.weight")


class WeightService:
    """
    Service for the available-alert weight catalogue.

    CALLED BY: API routes, snapshot loader, application startup
    """

    @staticmethod
    async def load_weights(db: AsyncSession) -> list[tuple[str, str, float]]:
        """
        Enabled (indicator, trigger, weight) rows for the configuration snapshot.

        CALLED BY: ConfigSnapshotLoader weight source
        """
        stmt = select(AvailableAlert).where(AvailableAlert.enabled.is_(True))
        result = await db.execute(stmt)
        return [(row.indicator, row.trigger, float(row.weight)) for row in result.scalars().all()]

    @staticmethod
    async def list_all(db: AsyncSession) -> list[AvailableAlertResponse]:
        stmt = select(AvailableAlert).order_by(AvailableAlert.indicator, AvailableAlert.trigger)
        result = await db.execute(stmt)
        return [AvailableAlertResponse.model_validate(row) for row in result.scalars().all()]

    @staticmethod
    async def create(db: AsyncSession, data: AvailableAlertCreate) -> AvailableAlertResponse:
        """
        Add a catalogue entry.

        CALLED BY: POST /api/available-alerts

        Raises:
            sqlalchemy.exc.IntegrityError: The (indicator, trigger) pair already exists
        """
        row = AvailableAlert(
            indicator=data.indicator.strip(),
            trigger=data.trigger.strip(),
            weight=data.weight,
            enabled=data.enabled,
            tooltip=data.tooltip,
        )
        try:
            db.add(row)
            await db.commit()
            await db.refresh(row)
        except Exception as e:
            await db.rollback()
            logger.error("create_available_alert_error", error=str(e), indicator=data.indicator, trigger=data.trigger)
            raise

        logger.info("available_alert_created", indicator=row.indicator, trigger=row.trigger, weight=float(row.weight))
        return AvailableAlertResponse.model_validate(row)

    @staticmethod
    async def update(
        db: AsyncSession,
        alert_id: str,
        data: AvailableAlertUpdate,
    ) -> Optional[AvailableAlertResponse]:
        """
        Change weight, enabled flag or tooltip.

        CALLED BY: PUT /api/available-alerts/{id}

        Returns:
            AvailableAlertResponse, or None if the entry does not exist
        """
        row = await db.get(AvailableAlert, alert_id)
        if row is None:
            return None

        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if value is None and field != "tooltip":
                continue
            setattr(row, field, value)

        try:
            await db.commit()
            await db.refresh(row)
        except Exception as e:
            await db.rollback()
            logger.error("update_available_alert_error", error=str(e), alert_id=alert_id)
            raise

        logger.info("available_alert_updated", alert_id=alert_id, fields=sorted(changes))
        return AvailableAlertResponse.model_validate(row)

    @staticmethod
    async def delete(db: AsyncSession, alert_id: str) -> bool:
        row = await db.get(AvailableAlert, alert_id)
        if row is None:
            return False
        try:
            await db.delete(row)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error("delete_available_alert_error", error=str(e), alert_id=alert_id)
            raise
        logger.info("available_alert_deleted", alert_id=alert_id)
        return True

    @staticmethod
    async def seed_defaults(db: AsyncSession) -> int:
        """
        Insert the default weight catalogue entries that are missing.

        Idempotent: existing pairs (and any edited weights) are left alone.

        Returns:
            int: Number of entries inserted
        """
        result = await db.execute(select(AvailableAlert.indicator, AvailableAlert.trigger))
        existing = {(indicator, trigger) for indicator, trigger in result.all()}

        added = 0
        for indicator, trigger, weight in DEFAULT_ALERT_WEIGHTS:
            if (indicator, trigger) in existing:
                continue
            db.add(AvailableAlert(indicator=indicator, trigger=trigger, weight=weight, enabled=True))
            added += 1

        try:
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error("available_alert_seeding_failed", error=str(e))
            raise

        logger.info("available_alerts_seeded", added=added, existing=len(existing))
        return added
