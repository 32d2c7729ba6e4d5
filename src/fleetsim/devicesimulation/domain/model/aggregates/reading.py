import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class Reading:
    """
    Reading - one generated sensor value

    Produced fresh each tick and never persisted.
    """
    value: float
    time: datetime
    schema: Optional[str] = None

    def to_payload(self) -> dict:
        """
        Serialize to the message body sent to the hub

        Returns:
            {"value": 23.4, "time": "2025-01-15T10:30:00.000Z"}
        """
        return {
            'value': self.value,
            'time': format_timestamp(self.time)
        }

    def serialize(self) -> str:
        return json.dumps(self.to_payload())


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a Z suffix"""
    if moment.tzinfo is None:
        moment = moment.astimezone()
    utc = moment.astimezone(timezone.utc)
    return utc.strftime('%Y-%m-%dT%H:%M:%S.') + f"{utc.microsecond // 1000:03d}Z"
