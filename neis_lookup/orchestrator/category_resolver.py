"""
Timetable dataset resolution.

NEIS publishes timetables in one dataset per school level. A coarse
category hint (school kind such as "고등학교", a level code such as "his",
or English words like "middle school") picks the most likely dataset; the
remaining datasets follow as fallbacks so an unrecognized hint never
leaves the lookup without candidates.
"""

from enum import Enum
from typing import Optional


class SchoolLevel(str, Enum):
    """School levels, valued by their NEIS dataset prefix."""

    ELEMENTARY = "els"
    MIDDLE = "mis"
    HIGH = "his"
    SPECIAL = "sps"

    @property
    def dataset(self) -> str:
        return f"{self.value}Timetable"


# Fallback order; also the order used for empty or unknown hints
FALLBACK_ORDER = (
    SchoolLevel.ELEMENTARY,
    SchoolLevel.MIDDLE,
    SchoolLevel.HIGH,
    SchoolLevel.SPECIAL,
)

# Checked top to bottom, first match wins
_LEVEL_KEYWORDS = (
    (SchoolLevel.SPECIAL, ("sps", "special", "특수")),
    (SchoolLevel.HIGH, ("his", "high", "vocational", "고등", "특성화", "마이스터")),
    (SchoolLevel.MIDDLE, ("mis", "middle", "중학")),
    (SchoolLevel.ELEMENTARY, ("els", "elementary", "초등")),
)


def detect_level(hint: Optional[str]) -> Optional[SchoolLevel]:
    """
    Detect the school level named by a category hint.

    Args:
        hint: Free-form classification string (may be empty or None)

    Returns:
        Detected level, or None when nothing is recognized

    Example:
        >>> detect_level("서울고등학교")
        <SchoolLevel.HIGH: 'his'>
    """
    if not hint:
        return None

    normalized = hint.strip().lower()
    for level, keywords in _LEVEL_KEYWORDS:
        if any(keyword in normalized for keyword in keywords):
            return level
    return None


def candidates_for(hint: Optional[str]) -> list[str]:
    """
    Ordered timetable dataset candidates for a category hint.

    The best guess comes first, then the other datasets in FALLBACK_ORDER.
    Total and deterministic: every hint, including "" and None, yields the
    same non-empty list each time.

    Example:
        >>> candidates_for("middle")
        ['misTimetable', 'elsTimetable', 'hisTimetable', 'spsTimetable']
        >>> candidates_for("")
        ['elsTimetable', 'misTimetable', 'hisTimetable', 'spsTimetable']
    """
    best = detect_level(hint) or FALLBACK_ORDER[0]
    ordered = [best] + [level for level in FALLBACK_ORDER if level is not best]
    return [level.dataset for level in ordered]
