"""
Lenient date parsing for values coming from the backend and billing APIs.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)


EPOCH_MILLISECONDS = 1000
EPOCH_SECONDS = 1


def coerce_datetime(value: Any, epoch_unit: int = EPOCH_MILLISECONDS) -> Optional[datetime]:
    """
    Parse an ISO-8601 string, epoch number, or datetime.

    Numbers are read in epoch_unit ticks per second: RevenueCat sends
    milliseconds (the default), the backend sends seconds (EPOCH_SECONDS).
    Anything unparseable becomes None so a single bad field never fails a
    whole payload. Naive datetimes are taken as UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, bool):
        logger.debug(f"Ignoring boolean date value: {value!r}")
        return None
    elif isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value / epoch_unit, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.debug(f"Ignoring out-of-range epoch value: {value!r}")
            return None
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Ignoring malformed date value: {value!r}")
            return None
    else:
        logger.debug(f"Ignoring date value of type {type(value).__name__}")
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
