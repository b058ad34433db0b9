import logging
import uuid
from collections import deque
from typing import Deque, List, Optional

from cryptopulse.core.exceptions import ResourceNotFoundError
from cryptopulse.risk.models import AlertLevel, RiskAlert, utcnow

logger = logging.getLogger("RiskAlerts")


class AlertBook:
    """Bounded, newest-last log of risk alerts for one user."""

    def __init__(self, max_alerts: int = 500):
        self._alerts: Deque[RiskAlert] = deque(maxlen=max_alerts)

    def __len__(self) -> int:
        return len(self._alerts)

    def add(self, level: AlertLevel, type: str, message: str) -> RiskAlert:
        alert = RiskAlert(id=uuid.uuid4().hex, level=level, type=type, message=message)
        self._alerts.append(alert)
        logger.debug(f"🔔 Alert [{level.value}] {type}: {message}")
        return alert

    def list(self, limit: int = 10, offset: int = 0, include_acknowledged: bool = True) -> List[RiskAlert]:
        """Most recent first."""
        alerts = [a for a in reversed(self._alerts) if include_acknowledged or not a.acknowledged]
        return alerts[offset : offset + limit]

    def get(self, alert_id: str) -> Optional[RiskAlert]:
        return next((a for a in self._alerts if a.id == alert_id), None)

    def acknowledge(self, alert_id: str) -> RiskAlert:
        alert = self.get(alert_id)
        if alert is None:
            raise ResourceNotFoundError(f"Alert '{alert_id}' not found")
        if not alert.acknowledged:
            alert.acknowledged = True
            alert.acknowledged_at = utcnow()
        return alert

    @property
    def unacknowledged_count(self) -> int:
        return sum(1 for a in self._alerts if not a.acknowledged)
