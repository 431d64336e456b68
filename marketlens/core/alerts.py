import uuid
from datetime import datetime, timedelta
from typing import List, Literal, Optional
from pydantic import BaseModel, Field
from marketlens.core.timestamps import utc_now
from marketlens.core.logger import logger

class GapAlertEvent(BaseModel):
    """Payload of a `gap-alert` push event"""
    instrumentId: int
    instrumentName: str
    alertType: Literal["gap_1", "gap_2"]
    timeSlot: str
    currentValue: float
    baselineValue: Optional[float] = None
    deviationPercent: float
    baselineDate: Optional[str] = None
    triggeredAt: str

class GapAlert(GapAlertEvent):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    read: bool = False
    received_at: datetime = Field(default_factory=utc_now)

class GapAlertCenter:
    """
    Visible toasts (newest first, capped) plus a read/unread history.
    Auto-dismiss is driven by calling expire() rather than by timers.
    """

    def __init__(self, max_visible: int = 5, history_limit: int = 50, auto_dismiss_seconds: float = 30.0):
        self.max_visible = max_visible
        self.history_limit = history_limit
        self.auto_dismiss = timedelta(seconds=auto_dismiss_seconds)
        self.alerts: List[GapAlert] = []
        self.history: List[GapAlert] = []

    def receive(self, payload: dict, now: Optional[datetime] = None) -> GapAlert:
        event = GapAlertEvent.model_validate(payload)
        alert = GapAlert(**event.model_dump(), received_at=now or utc_now())
        self.alerts = [alert, *self.alerts][: self.max_visible]
        self.history = [alert, *self.history][: self.history_limit]
        logger.info(f"Gap alert {alert.alertType} for {alert.instrumentName}: {alert.deviationPercent:.2f}%")
        return alert

    def _set_read(self, alert_id: Optional[str] = None):
        self.history = [
            a.model_copy(update={"read": True}) if alert_id is None or a.id == alert_id else a
            for a in self.history
        ]

    def mark_read(self, alert_id: str):
        self._set_read(alert_id)

    def mark_all_read(self):
        self._set_read()

    def dismiss(self, alert_id: str):
        self.alerts = [a for a in self.alerts if a.id != alert_id]
        self.mark_read(alert_id)

    def expire(self, now: Optional[datetime] = None) -> List[str]:
        """Dismiss visible alerts older than the auto-dismiss window"""
        if self.auto_dismiss <= timedelta(0):
            return []
        now = now or utc_now()
        expired = [a.id for a in self.alerts if now - a.received_at >= self.auto_dismiss]
        for alert_id in expired:
            self.dismiss(alert_id)
        return expired

    def clear_history(self):
        self.history = []

    @property
    def unread_count(self) -> int:
        return sum(1 for a in self.history if not a.read)
