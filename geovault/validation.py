"""
Input validation for setup, passphrase rotation and trusted zone editing.

Every check is a pure function returning a ValidationResult so any front end
can reuse it. Callers that mutate state turn a failed result into a
ValidationError through require().
"""

import math
from typing import Iterable, NamedTuple, Optional

from . import config
from .errors import ValidationError
from .geofence import GeofenceEngine
from .models import Coordinate, TrustedZone


class ValidationResult(NamedTuple):
    ok: bool
    message: str = ""


VALID = ValidationResult(True)


def invalid(message: str) -> ValidationResult:
    return ValidationResult(False, message)


def require(result: ValidationResult) -> None:
    """Raise ValidationError for a failed result."""
    if not result.ok:
        raise ValidationError(result.message)


def validate_coordinates(latitude, longitude) -> ValidationResult:
    """Accepts numbers or numeric strings, as typed into a form."""
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError):
        return invalid("Invalid coordinates. Please enter valid numbers.")
    if math.isnan(lat) or math.isnan(lng):
        return invalid("Invalid coordinates. Please enter valid numbers.")
    if lat < -90 or lat > 90:
        return invalid("Latitude must be between -90 and 90 degrees.")
    if lng < -180 or lng > 180:
        return invalid("Longitude must be between -180 and 180 degrees.")
    return VALID


def validate_radius(radius) -> ValidationResult:
    try:
        value = float(radius)
    except (TypeError, ValueError):
        value = math.nan
    if math.isnan(value) or value < config.ZONE_RADIUS_MIN_METERS or value > config.ZONE_RADIUS_MAX_METERS:
        return invalid(
            f"Radius must be between {config.ZONE_RADIUS_MIN_METERS} "
            f"and {config.ZONE_RADIUS_MAX_METERS} meters."
        )
    return VALID


def validate_zone_name(name: Optional[str]) -> ValidationResult:
    if not name or not name.strip():
        return invalid("Please enter a location name.")
    return VALID


def validate_zone_uniqueness(
    center: Coordinate,
    zones: Iterable[TrustedZone],
    engine: Optional[GeofenceEngine] = None,
    ignore_id: Optional[str] = None,
) -> ValidationResult:
    """Reject a center closer than the duplicate distance to an existing zone."""
    engine = engine or GeofenceEngine()
    for zone in zones:
        if zone.id == ignore_id:
            continue
        if engine.distance(center, zone.center) < config.ZONE_DUPLICATE_DISTANCE_METERS:
            return invalid(f'A trusted location "{zone.name}" already exists very close to this position.')
    return VALID


def validate_new_passphrase(passphrase: str, confirmation: Optional[str] = None) -> ValidationResult:
    """
    Check a passphrase chosen at setup or rotation.

    Returns:
        ValidationResult; confirmation is only compared when given
    """
    if not passphrase or len(passphrase) < config.PASSWORD_MIN_LENGTH:
        return invalid(f"Password must be at least {config.PASSWORD_MIN_LENGTH} characters long")
    if confirmation is not None and passphrase != confirmation:
        return invalid("Passwords do not match")
    return VALID


def validate_zone(
    name: str,
    latitude,
    longitude,
    radius,
    zones: Iterable[TrustedZone] = (),
    engine: Optional[GeofenceEngine] = None,
    ignore_id: Optional[str] = None,
) -> ValidationResult:
    """Run every zone check in form order and return the first failure."""
    for result in (validate_zone_name(name), validate_coordinates(latitude, longitude)):
        if not result.ok:
            return result
    result = validate_radius(radius)
    if not result.ok:
        return result
    return validate_zone_uniqueness(
        Coordinate(float(latitude), float(longitude)), zones, engine=engine, ignore_id=ignore_id
    )
