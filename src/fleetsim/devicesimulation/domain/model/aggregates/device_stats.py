from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class DeviceStats:
    """
    Counters of one simulated device

    in_flight counts sends of the current transport handle that have not
    completed yet; it starts again from zero on every new handle.
    """
    messages_sent: int = 0
    send_errors: int = 0
    messages_received: int = 0
    in_flight: int = 0
    reconnects: int = 0
    last_sent_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            'messagesSent': self.messages_sent,
            'sendErrors': self.send_errors,
            'messagesReceived': self.messages_received,
            'inFlight': self.in_flight,
            'reconnects': self.reconnects,
            'lastSentAt': self.last_sent_at.isoformat() if self.last_sent_at else None
        }
