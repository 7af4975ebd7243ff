"""Pure scheduling primitives: slot generation and overlap filtering."""

from studio_agenda.scheduling.slots import (
    Slot,
    TimeInterval,
    add_minutes,
    day_of_week,
    filter_available,
    format_time,
    generate_slots,
    overlaps,
    overlaps_any,
    parse_time,
)

__all__ = [
    "Slot",
    "TimeInterval",
    "add_minutes",
    "day_of_week",
    "filter_available",
    "format_time",
    "generate_slots",
    "overlaps",
    "overlaps_any",
    "parse_time",
]
