"""Catalog matching for scanned equipment names."""

from rental_invoicing.matching.equipment_matcher import (
    EquipmentMatcher,
    MatchCandidate,
    find_closest_equipment,
    rank_equipment,
)

__all__ = [
    "EquipmentMatcher",
    "MatchCandidate",
    "find_closest_equipment",
    "rank_equipment",
]
