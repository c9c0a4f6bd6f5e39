"""Slot generation and ranking from busy intervals."""

from .availability import (
    DEFAULT_MAX_SLOTS,
    SLOT_STEP,
    find_available_slots,
    intersect_availability,
    rank_slots,
    score_slot,
)

__all__ = [
    "DEFAULT_MAX_SLOTS",
    "SLOT_STEP",
    "find_available_slots",
    "intersect_availability",
    "rank_slots",
    "score_slot",
]
