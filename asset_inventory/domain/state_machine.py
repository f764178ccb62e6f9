from __future__ import annotations

from enum import StrEnum


class AssetStatus(StrEnum):
    AVAILABLE = "Available"
    IN_USE = "In Use"
    UNDER_MAINTENANCE = "Under Maintenance"
    RETIRED = "Retired"


class TrackingChangeType(StrEnum):
    STATUS_CHANGE = "status_change"
    LOCATION_CHANGE = "location_change"
    MANUAL_UPDATE = "manual_update"


WARRANTY_REGISTERED = "Warranty Registered"


def parse_status(value: str | AssetStatus) -> AssetStatus:
    if isinstance(value, AssetStatus):
        return value
    try:
        return AssetStatus(value)
    except ValueError:
        allowed = ", ".join(item.value for item in AssetStatus)
        raise ValueError(f"invalid status {value!r}; expected one of: {allowed}") from None


def normalize_location(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def warranty_can_change(current: str | None, proposed: str | None) -> bool:
    """A set warranty status is never cleared; only a non-empty value is applied."""
    if proposed is None or not proposed.strip():
        return False
    return proposed.strip() != (current or "")
