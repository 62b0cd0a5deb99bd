"""
Formatters for DFP payloads.

Converts human-entered values into the structures the DFP API expects.
"""

import logging
from datetime import datetime
from typing import Any

from .constants import DFP_DEFAULT_DATE_FORMAT, DFP_DEFAULT_TIME_ZONE

logger = logging.getLogger(__name__)


def parse_human_date(date_input: datetime | str, date_format: str = DFP_DEFAULT_DATE_FORMAT) -> datetime:
    """
    Parse a human date string such as ``"10-26-2017, 15:00:00"``.

    Args:
        date_input: datetime object or string in ``date_format``
        date_format: strptime format of the string

    Raises:
        ValueError: If the string does not match ``date_format``
    """
    if isinstance(date_input, datetime):
        return date_input
    return datetime.strptime(date_input.strip(), date_format)


def format_start_date_time(
    date_input: datetime | str,
    time_zone: str = DFP_DEFAULT_TIME_ZONE,
    date_format: str = DFP_DEFAULT_DATE_FORMAT,
) -> dict[str, Any]:
    """
    Format a start date for the DFP DateTime object.

    Seconds are always sent as zero.

    Returns:
        DFP DateTime object format
    """
    date_obj = parse_human_date(date_input, date_format)

    return {
        "date": {"year": date_obj.year, "month": date_obj.month, "day": date_obj.day},
        "hour": date_obj.hour,
        "minute": date_obj.minute,
        "second": 0,
        "timeZoneId": time_zone,
    }


def format_custom_criteria(key_id: str, value_ids: list[str], operator: str = "IS") -> dict[str, Any]:
    """Format one resolved key/value pair as a DFP CustomCriteria node."""
    return {
        "xsi_type": "CustomCriteria",
        "keyId": key_id,
        "valueIds": list(value_ids),
        "operator": operator,
    }
