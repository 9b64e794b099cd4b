"""Selectable display units and linear display/base conversion.

Every quantity is stored in a base unit (``s``, ``m``, ``m²`` ...).  A
row's display unit is one of the options generated for its base unit;
``to_base`` is the scale from that option into the base unit.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class UnitOption(BaseModel):
    """One selectable display unit and its scale into the base unit."""

    model_config = ConfigDict(frozen=True)

    label: str
    to_base: float


_TIME = (
    ("ns", 1e-9),
    ("µs", 1e-6),
    ("ms", 1e-3),
    ("seconds", 1),
    ("minutes", 60),
    ("hours", 3600),
    ("days", 86400),
)

_LENGTH = (
    ("nm", 1e-9),
    ("µm", 1e-6),
    ("mm", 1e-3),
    ("cm", 1e-2),
    ("m", 1),
)

_SPEED = (
    ("µm/s", 1e-6),
    ("mm/s", 1e-3),
    ("m/s", 1),
)

_FREQUENCY = (
    ("Hz", 1),
    ("kHz", 1e3),
    ("MHz", 1e6),
    ("GHz", 1e9),
)

_AREA_TAGS = {"m²", "m2"}
_VOLUME_TAGS = {"m³", "m3"}
_RATE_TAGS = {"m³/s", "m3/s"}


def _options(table: tuple[tuple[str, float], ...]) -> list[UnitOption]:
    return [UnitOption(label=label, to_base=factor) for label, factor in table]


def _powered(options: list[UnitOption], power: int, suffix: str) -> list[UnitOption]:
    return [UnitOption(label=f"{u.label}{suffix}", to_base=u.to_base**power) for u in options]


def unit_options_for_base(base_unit: str | None) -> list[UnitOption]:
    """Selectable display units for *base_unit*, smallest first.

    Area and volume options are the length options squared and cubed.
    Unknown or missing tags are dimensionless and get no options.
    """
    tag = (base_unit or "").replace(" ", "")
    if tag == "s":
        return _options(_TIME)
    if tag == "m":
        return _options(_LENGTH)
    if tag in _AREA_TAGS:
        return _powered(_options(_LENGTH), 2, "²")
    if tag in _VOLUME_TAGS:
        return _powered(_options(_LENGTH), 3, "³")
    if tag == "m/s":
        return _options(_SPEED)
    if tag in _RATE_TAGS:
        return [
            UnitOption(label=f"{u.label} / s", to_base=u.to_base)
            for u in unit_options_for_base("m³")
        ]
    if tag == "Hz":
        return _options(_FREQUENCY)
    return []


def find_unit_option(base_unit: str | None, label: str | None) -> UnitOption | None:
    """Return the option labelled *label* for *base_unit*, if offered."""
    if label is None:
        return None
    for option in unit_options_for_base(base_unit):
        if option.label == label:
            return option
    return None


def to_base(value: float, factor: float | None) -> float:
    """Display value -> base value.  A missing factor means identity."""
    if factor is None:
        return value
    return value * factor


def from_base(value: float, factor: float | None) -> float:
    """Base value -> display value.  A missing factor means identity."""
    if factor is None:
        return value
    return value / factor
