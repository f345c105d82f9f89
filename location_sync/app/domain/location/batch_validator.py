"""
Batch Validator.

Structural and range validation of an uploaded batch of raw GPS samples,
plus conversion of validated raw mappings into domain samples.
"""

import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from location_sync.app.domain.location.types import LocationSample, ValidationResult, ensure_utc

DEFAULT_MAX_BATCH_SIZE = 100
MAX_ID_LENGTH = 64

# Decimal places kept per field; matches the NUMERIC scales of location_samples
COORDINATE_PLACES = 7
MEASUREMENT_PLACES = 2

_datetime_adapter = TypeAdapter(datetime)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, Decimal)):
        return value.is_finite() if isinstance(value, Decimal) else True
    if isinstance(value, float):
        return math.isfinite(value)
    return False


def _is_present(value: Any) -> bool:
    return value is not None and value != ""


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string, epoch number or datetime; None if unparseable."""
    if not _is_present(value) or isinstance(value, bool):
        return None
    try:
        return ensure_utc(_datetime_adapter.validate_python(value))
    except (PydanticValidationError, ValueError, OverflowError):
        return None


def validate_sample(point: Any, index: int) -> List[str]:
    """Collect every rule violation for a single raw sample."""
    prefix = f"Point {index}:"
    if not isinstance(point, Mapping):
        return [f"{prefix} must be an object"]

    errors: List[str] = []

    # Required fields
    for name in ("client_id", "subject_id"):
        value = point.get(name)
        if not _is_present(value):
            errors.append(f"{prefix} {name} is required")
        elif not isinstance(value, str):
            errors.append(f"{prefix} {name} must be a string")
        elif len(value) > MAX_ID_LENGTH:
            errors.append(f"{prefix} {name} must be at most {MAX_ID_LENGTH} characters")

    latitude = point.get("latitude")
    if not _is_number(latitude):
        errors.append(f"{prefix} latitude must be a number")
    elif not -90 <= latitude <= 90:
        errors.append(f"{prefix} latitude must be between -90 and 90")

    longitude = point.get("longitude")
    if not _is_number(longitude):
        errors.append(f"{prefix} longitude must be a number")
    elif not -180 <= longitude <= 180:
        errors.append(f"{prefix} longitude must be between -180 and 180")

    accuracy = point.get("accuracy_meters")
    if not _is_number(accuracy):
        errors.append(f"{prefix} accuracy_meters must be a number")
    elif accuracy < 0:
        errors.append(f"{prefix} accuracy_meters must be positive")

    # Optional telemetry
    battery = point.get("battery_percent")
    if battery is not None and (not _is_number(battery) or not 0 <= battery <= 100):
        errors.append(f"{prefix} battery_percent must be between 0 and 100")

    speed = point.get("speed")
    if speed is not None and (not _is_number(speed) or speed < 0):
        errors.append(f"{prefix} speed must be positive")

    heading = point.get("heading")
    if heading is not None and (not _is_number(heading) or not 0 <= heading <= 360):
        errors.append(f"{prefix} heading must be between 0 and 360")

    # Timestamp
    timestamp = point.get("timestamp")
    if not _is_present(timestamp):
        errors.append(f"{prefix} timestamp is required")
    elif parse_timestamp(timestamp) is None:
        errors.append(f"{prefix} invalid timestamp format")

    return errors


def validate_batch(samples: Any, max_batch_size: int = DEFAULT_MAX_BATCH_SIZE) -> ValidationResult:
    """
    Validate an uploaded batch.

    Shape problems (not a list, empty, oversized) stop immediately with a
    single error. Otherwise every per-sample violation is collected and
    any one of them invalidates the whole batch.
    """
    if not isinstance(samples, list):
        return ValidationResult(valid=False, errors=["Data must be an array"])

    if len(samples) == 0:
        return ValidationResult(valid=False, errors=["Batch cannot be empty"])

    if len(samples) > max_batch_size:
        return ValidationResult(
            valid=False,
            errors=[f"Batch size cannot exceed {max_batch_size} points"],
        )

    errors: List[str] = []
    for index, point in enumerate(samples):
        errors.extend(validate_sample(point, index))

    return ValidationResult(valid=not errors, errors=errors)


def _to_decimal(value: Any, places: int) -> Decimal:
    """
    Convert to Decimal with at most `places` decimal places.

    Extra places are rounded half-up, the way PostgreSQL NUMERIC rounds,
    so the payload, the conflict JSON and the stored row hold the same
    value. Shorter values are left as they are.
    """
    # str() first: Decimal(0.1) would carry the binary float error along
    try:
        result = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"not a decimal value: {value!r}") from exc
    if result.as_tuple().exponent < -places:
        result = result.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    return result


def _optional_decimal(value: Any, places: int) -> Optional[Decimal]:
    return None if value is None else _to_decimal(value, places)


def parse_sample(raw: Mapping[str, Any]) -> LocationSample:
    """
    Build a domain sample from a validated upload or a stored JSON payload.

    Stored payloads carry decimals as strings; both forms are accepted.
    Values are rounded to the precision the database keeps.
    """
    timestamp = parse_timestamp(raw.get("timestamp"))
    if timestamp is None:
        raise ValueError(f"invalid timestamp: {raw.get('timestamp')!r}")

    return LocationSample(
        client_id=str(raw["client_id"]),
        subject_id=str(raw["subject_id"]),
        latitude=_to_decimal(raw["latitude"], COORDINATE_PLACES),
        longitude=_to_decimal(raw["longitude"], COORDINATE_PLACES),
        accuracy_meters=_to_decimal(raw["accuracy_meters"], MEASUREMENT_PLACES),
        timestamp_utc=timestamp,
        battery_percent=_optional_decimal(raw.get("battery_percent"), MEASUREMENT_PLACES),
        speed=_optional_decimal(raw.get("speed"), MEASUREMENT_PLACES),
        heading=_optional_decimal(raw.get("heading"), MEASUREMENT_PLACES),
    )
