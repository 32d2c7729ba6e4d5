from dataclasses import dataclass

from fleetsim.config import SimulationConfig


@dataclass(frozen=True)
class FleetSettings:
    """
    Runtime preferences shared by every simulated device

    Passed to the runner and devices explicitly instead of being read from
    module globals.
    """
    # Log successful send/ack results at INFO (otherwise DEBUG)
    log_send_results: bool = False

    # Seconds to wait before reconnecting after a disconnect (0 = immediately)
    reconnect_delay: float = 0

    @classmethod
    def from_config(cls, config=SimulationConfig) -> 'FleetSettings':
        return cls(
            log_send_results=config.LOG_SEND_RESULTS,
            reconnect_delay=config.RECONNECT_DELAY
        )
