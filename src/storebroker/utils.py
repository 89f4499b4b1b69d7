"""
Utility functions for storebroker-client.

This module provides helper functions for identifier validation, publish
date handling and reading caller-supplied submission data.
"""

import json
import re
import uuid
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Union

from .exceptions import ValidationError


def validate_product_id(product_id: str) -> str:
    """
    Validate a Store product ID (application or in-app product).

    Args:
        product_id: The product ID to validate (e.g. '9NBLGGH4R315')

    Returns:
        The validated product ID, upper-cased

    Raises:
        ValidationError: If the product ID is invalid
    """
    if not product_id:
        raise ValidationError("Product ID cannot be empty")

    product_id_str = str(product_id).strip().upper()

    # Store IDs are 12 alphanumeric characters
    if not re.match(r"^[0-9A-Z]{12}$", product_id_str):
        raise ValidationError(
            f"Product ID should be 12 alphanumeric characters, got: {product_id_str}"
        )

    return product_id_str


def validate_flight_id(flight_id: str) -> str:
    """
    Validate a flight ID, which is a GUID.

    Raises:
        ValidationError: If the flight ID is not a GUID
    """
    if not flight_id:
        raise ValidationError("Flight ID cannot be empty")

    try:
        return str(uuid.UUID(str(flight_id).strip()))
    except ValueError:
        raise ValidationError(f"Flight ID must be a GUID, got: {flight_id}")


def validate_submission_id(submission_id: str) -> str:
    """Validate a submission ID (a long numeric string)."""
    if not submission_id:
        raise ValidationError("Submission ID cannot be empty")

    submission_str = str(submission_id).strip()
    if not submission_str.isdigit():
        raise ValidationError(f"Submission ID must be numeric, got: {submission_str}")

    return submission_str


def normalize_publish_date(date_input: Union[str, date, datetime]) -> datetime:
    """
    Normalize various date inputs to a timezone-aware UTC datetime.

    Naive values are taken to already be in UTC.

    Args:
        date_input: ISO 8601 string, date, or datetime object

    Returns:
        Normalized datetime in UTC

    Raises:
        ValidationError: If the date cannot be parsed
    """
    if isinstance(date_input, datetime):
        value = date_input
    elif isinstance(date_input, date):
        value = datetime(date_input.year, date_input.month, date_input.day)
    elif isinstance(date_input, str):
        text = date_input.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        # The service writes 7 fractional digits; fromisoformat takes at most 6
        text = re.sub(
            r"(\d{2}:\d{2}:\d{2})\.(\d+)",
            lambda m: f"{m.group(1)}.{(m.group(2) + '000000')[:6]}",
            text,
        )
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(
                f"Invalid date format. Expected ISO 8601 "
                f"(e.g. '2026-12-31T23:59:59Z'), got: {date_input}"
            )
    else:
        raise ValidationError(
            f"Invalid date type. Expected str, date, or datetime, got: {type(date_input)}"
        )

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def load_submission_data(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a submission-data JSON file produced by the packaging tooling.

    Raises:
        ValidationError: If the file is missing or not a JSON object
    """
    path = Path(path)
    if not path.is_file():
        raise ValidationError(f"Submission data file not found: {path}")

    try:
        # Packaging tools on Windows often write a BOM
        with open(path, "r", encoding="utf-8-sig") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Submission data file {path} is not valid JSON: {e}")

    if not isinstance(data, dict):
        raise ValidationError(f"Submission data file {path} must contain a JSON object")

    return data


def truncate_string(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate a string to a maximum length.

    Args:
        text: The text to truncate
        max_length: Maximum length allowed
        suffix: Suffix to append if truncated

    Returns:
        Truncated string
    """
    if not text or len(text) <= max_length:
        return text

    return text[: max_length - len(suffix)] + suffix
