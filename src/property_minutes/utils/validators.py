"""Input validation utilities for meeting requests and remote queries."""

import re
from datetime import date
from enum import Enum
from typing import Any, Optional, Type

from .exceptions import InvalidRequest


class InputValidator:
    """Input validation and query escaping."""

    TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

    @staticmethod
    def validate_time(value: Any, field_name: str) -> str:
        """Validate a zero-padded ``HH:MM`` time string."""
        if not value:
            raise InvalidRequest(f"{field_name} is required", {"field": field_name})

        if not isinstance(value, str) or not InputValidator.TIME_PATTERN.match(value):
            raise InvalidRequest(
                f"{field_name} must be in HH:MM format, got: {value!r}",
                {"field": field_name},
            )

        return value

    @staticmethod
    def validate_date(value: Any, field_name: str) -> date:
        if value is None:
            raise InvalidRequest(f"{field_name} is required", {"field": field_name})

        if not isinstance(value, date):
            raise InvalidRequest(
                f"{field_name} must be a date, got: {type(value).__name__}",
                {"field": field_name},
            )

        return value

    @staticmethod
    def validate_enum(value: Any, enum_type: Type[Enum], field_name: str) -> Enum:
        """Accept a member of ``enum_type`` or one of its values."""
        if isinstance(value, enum_type):
            return value

        try:
            return enum_type(value)
        except (TypeError, ValueError):
            allowed = ", ".join(str(member.value) for member in enum_type)
            raise InvalidRequest(
                f"{field_name} must be one of {allowed}, got: {value!r}",
                {"field": field_name},
            )

    @staticmethod
    def validate_non_empty(values: Any, field_name: str) -> list:
        if not values:
            raise InvalidRequest(f"{field_name} must not be empty", {"field": field_name})
        return list(values)

    @staticmethod
    def validate_time_range(start_time: str, end_time: str) -> None:
        # Zero-padded HH:MM strings order the same way the times do.
        if start_time >= end_time:
            raise InvalidRequest(
                f"Start time {start_time} must be before end time {end_time}",
                {"field": "start_time"},
            )

    @staticmethod
    def validate_date_window(start: date, end: date) -> None:
        if start > end:
            raise InvalidRequest(
                f"Mail window start {start.isoformat()} is after end {end.isoformat()}",
                {"field": "mail_window_start"},
            )

    @staticmethod
    def escape_gmail_label(label: str) -> str:
        """Escape a label for use inside a quoted ``label:"..."`` term."""
        return label.replace('"', '\\"')

    @staticmethod
    def escape_drive_query_value(value: str) -> str:
        """Escape a value embedded in a single-quoted Drive ``q`` literal."""
        return value.replace("\\", "\\\\").replace("'", "\\'")

    @staticmethod
    def normalize_folder_path(path: Optional[str]) -> list:
        """Split a ``/``-separated folder path into non-empty segments."""
        if not path:
            return []
        return [segment.strip() for segment in path.split("/") if segment.strip()]
