"""Wall-clock access behind ClockProtocol."""

from datetime import datetime, timezone


class SystemClock:
    """Clock backed by the host's UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)
