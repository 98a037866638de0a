"""Impact classification for catalog field changes.

Implements:
- Field name -> impact level lookup (HIGH / MEDIUM / LOW)
- The approval gate derived from (change type, impact level)
- Significance tags shown on ad-hoc comparisons
"""
import enum
import re
from typing import Iterable, Optional

from app.core.snapshot_diff import ChangeType, FieldDelta


class ImpactLevel(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        return IMPACT_RANK[self]


IMPACT_RANK = {
    ImpactLevel.LOW: 1,
    ImpactLevel.MEDIUM: 2,
    ImpactLevel.HIGH: 3,
}


class Significance(str, enum.Enum):
    COSMETIC = "COSMETIC"
    NOTABLE = "NOTABLE"
    CRITICAL = "CRITICAL"


SIGNIFICANCE_BY_IMPACT = {
    ImpactLevel.HIGH: Significance.CRITICAL,
    ImpactLevel.MEDIUM: Significance.NOTABLE,
    ImpactLevel.LOW: Significance.COSMETIC,
}

# Identity-bearing and capacity/credit-bearing fields
HIGH_IMPACT_FIELDS = frozenset({
    "id",
    "code",
    "course_code",
    "course_number",
    "section_id",
    "program_code",
    "department_code",
    "subject_code",
    "credits",
    "credit_hours",
    "min_credits",
    "max_credits",
    "contact_hours",
    "capacity",
    "max_capacity",
    "seats",
})

# Scheduling and enrollment-limit fields
MEDIUM_IMPACT_FIELDS = frozenset({
    "schedule",
    "meeting_days",
    "meeting_times",
    "start_time",
    "end_time",
    "start_date",
    "end_date",
    "term",
    "semester",
    "session",
    "room",
    "location",
    "enrollment_limit",
    "max_enrollment",
    "min_enrollment",
    "waitlist_limit",
})

_SEGMENT_SPLIT = re.compile(r"[.\[\]]+")


def property_segments(property_name: Optional[str]) -> list[str]:
    """Split ``sections[0].meeting_days`` into its field names."""
    if not property_name:
        return []
    return [s for s in _SEGMENT_SPLIT.split(property_name) if s and not s.isdigit()]


class ImpactPolicy:
    """Deterministic mapping from a field delta to its impact level.

    A property path is classified by the most severe field name along it,
    so ``schedule.start_time`` and ``schedule.notes`` are both MEDIUM.
    Whole-entity adds and removes carry ``entity_impact``.
    """

    def __init__(
        self,
        high_fields: Iterable[str] = HIGH_IMPACT_FIELDS,
        medium_fields: Iterable[str] = MEDIUM_IMPACT_FIELDS,
        entity_impact: ImpactLevel = ImpactLevel.HIGH,
    ):
        self.high_fields = frozenset(f.lower() for f in high_fields)
        self.medium_fields = frozenset(f.lower() for f in medium_fields)
        self.entity_impact = entity_impact

    def field_impact(self, name: str) -> ImpactLevel:
        lowered = name.lower()
        if lowered in self.high_fields:
            return ImpactLevel.HIGH
        if lowered in self.medium_fields:
            return ImpactLevel.MEDIUM
        return ImpactLevel.LOW

    def classify(self, delta: FieldDelta) -> ImpactLevel:
        if delta.property_name is None:
            return self.entity_impact
        levels = [self.field_impact(s) for s in property_segments(delta.property_name)]
        if not levels:
            return ImpactLevel.LOW
        return max(levels, key=lambda level: level.rank)

    @staticmethod
    def requires_approval(change_type: ChangeType, impact: ImpactLevel) -> bool:
        """HIGH always gates promotion; MEDIUM only when something is removed."""
        if impact is ImpactLevel.HIGH:
            return True
        return impact is ImpactLevel.MEDIUM and change_type is ChangeType.REMOVED

    @staticmethod
    def significance(impact: ImpactLevel) -> Significance:
        return SIGNIFICANCE_BY_IMPACT[impact]


DEFAULT_IMPACT_POLICY = ImpactPolicy()
