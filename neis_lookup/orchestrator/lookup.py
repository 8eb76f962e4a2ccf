"""
Lookup Orchestrator.

Composes the category resolver, date windows, response cache and NEIS
client into timetable, meal and school lookups. Timetable candidates are
tried strictly in order and the first non-empty row list wins.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from neis_lookup.clients.neis_client import NeisClient
from neis_lookup.clients.signature import RequestSignature
from neis_lookup.normalizer.schemas import DateWindow, MealRow, ScheduleRow, SchoolInfo, SchoolRef
from neis_lookup.normalizer.transformer import (
    extract_rows,
    to_meal_rows,
    to_schedule_rows,
    to_school_infos,
)
from neis_lookup.orchestrator.cache_manager import CacheManager
from neis_lookup.orchestrator.category_resolver import candidates_for
from neis_lookup.utils import date_window
from neis_lookup.utils.exceptions import InvalidInputError, UpstreamError

logger = logging.getLogger(__name__)

MEAL_DATASET = "mealServiceDietInfo"
SCHOOL_DATASET = "schoolInfo"

When = Union[str, DateWindow, None]


class ResolutionState(str, Enum):
    """Candidate walk states."""

    PENDING = "pending"
    TRYING = "trying"
    FOUND = "found"  # A candidate returned rows
    EXHAUSTED = "exhausted"  # Every candidate answered with no rows
    FAILED = "failed"  # Nothing found and at least one candidate errored


@dataclass
class CandidateWalk:
    """
    Sequential walk over candidate datasets.

    State Transitions:
        PENDING → TRYING(0): start()
        TRYING(i) → TRYING(i+1): empty rows or upstream failure, candidates left
        TRYING(i) → FOUND: non-empty rows
        TRYING(last) → EXHAUSTED: empty rows and no earlier failure
        TRYING(last) → FAILED: otherwise
    """

    candidates: list[str]
    state: ResolutionState = ResolutionState.PENDING
    index: int = -1
    errors: list[UpstreamError] = field(default_factory=list)

    def __post_init__(self):
        if not self.candidates:
            raise ValueError("CandidateWalk needs at least one candidate")

    @property
    def current(self) -> Optional[str]:
        """Dataset being tried, or None outside TRYING."""
        if self.state is ResolutionState.TRYING:
            return self.candidates[self.index]
        return None

    @property
    def finished(self) -> bool:
        return self.state in (
            ResolutionState.FOUND,
            ResolutionState.EXHAUSTED,
            ResolutionState.FAILED,
        )

    def start(self) -> str:
        self._expect(ResolutionState.PENDING)
        self.state = ResolutionState.TRYING
        self.index = 0
        return self.candidates[0]

    def found(self) -> None:
        self._expect(ResolutionState.TRYING)
        self.state = ResolutionState.FOUND

    def empty(self) -> Optional[str]:
        """Record empty rows; returns the next candidate, if any."""
        self._expect(ResolutionState.TRYING)
        return self._advance()

    def failed(self, error: UpstreamError) -> Optional[str]:
        """Record an upstream failure; returns the next candidate, if any."""
        self._expect(ResolutionState.TRYING)
        self.errors.append(error)
        return self._advance()

    def _advance(self) -> Optional[str]:
        if self.index + 1 < len(self.candidates):
            self.index += 1
            return self.candidates[self.index]
        self.state = ResolutionState.FAILED if self.errors else ResolutionState.EXHAUSTED
        return None

    def _expect(self, state: ResolutionState) -> None:
        if self.state is not state:
            raise RuntimeError(f"Invalid transition from {self.state.value}")


class LookupOrchestrator:
    """
    Timetable, meal and school lookups over the cached NEIS client.

    Failure policy:
        - A failed candidate does not stop later candidates
        - All candidates empty → empty list (no classes/meals, not an error)
        - Nothing found and any candidate failed → last UpstreamError raised

    Example:
        >>> lookup = LookupOrchestrator(NeisClient(), CacheManager())
        >>> school = SchoolRef(school_id="7010569", office_id="B10", grade="1", class_no="3")
        >>> rows = await lookup.resolve_week_schedule(school, "20240310", "고등학교")
    """

    def __init__(
        self,
        client: NeisClient,
        cache: CacheManager,
        clock: Optional[date_window.Clock] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            client: Upstream client (only component doing network I/O)
            cache: Response cache keyed by request signature
            clock: Time source for "today" (defaults to the system clock)
        """
        self.client = client
        self.cache = cache
        self.clock = clock

        self._stats = {
            "schedule_lookups": 0,
            "meal_lookups": 0,
            "school_searches": 0,
            "empty_results": 0,
            "candidate_failures": 0,
            "upstream_failures": 0,
        }
        self.last_walk: Optional[CandidateWalk] = None

    async def _fetch(self, signature: RequestSignature) -> Any:
        return await self.cache.get(
            signature.cache_key, lambda: self.client.fetch(signature)
        )

    def _require_school(self, school: SchoolRef) -> None:
        if not school.school_id:
            raise InvalidInputError("School identifier is required", field="school_id")
        if not school.office_id:
            raise InvalidInputError("Office identifier is required", field="office_id")

    def _resolve_when(self, when: When) -> DateWindow:
        if when is None:
            return date_window.day_window(date_window.today(self.clock))
        if isinstance(when, DateWindow):
            return when
        return date_window.day_window(when)

    async def resolve_schedule(
        self,
        school: SchoolRef,
        when: When = None,
        category_hint: Optional[str] = "",
    ) -> list[ScheduleRow]:
        """
        Timetable rows from the first candidate dataset that has any.

        Args:
            school: School (and optional grade/class) identifiers
            when: None for today, a YMD string for one day, or a DateWindow
            category_hint: School kind used to order candidate datasets

        Returns:
            Schedule rows, empty when no candidate has classes for the period

        Raises:
            InvalidInputError: Missing identifiers or malformed date
            UpstreamError: Nothing found and at least one candidate failed
        """
        self._require_school(school)
        window = self._resolve_when(when)
        self._stats["schedule_lookups"] += 1

        if window.is_single_day:
            date_params = {"ALL_TI_YMD": window.from_ymd}
        else:
            date_params = {"TI_FROM_YMD": window.from_ymd, "TI_TO_YMD": window.to_ymd}

        walk = CandidateWalk(candidates_for(category_hint))
        self.last_walk = walk
        dataset = walk.start()

        while dataset is not None:
            signature = RequestSignature.build(
                dataset,
                ATPT_OFCDC_SC_CODE=school.office_id,
                SD_SCHUL_CODE=school.school_id,
                GRADE=school.grade,
                CLASS_NM=school.class_no,
                **date_params,
            )

            try:
                body = await self._fetch(signature)
            except UpstreamError as e:
                self._stats["candidate_failures"] += 1
                logger.warning(
                    f"Candidate {dataset} failed, trying next",
                    extra={"dataset": dataset, "error": str(e)},
                )
                dataset = walk.failed(e)
                continue

            rows = extract_rows(body, dataset)
            if rows:
                walk.found()
                logger.info(
                    f"Resolved {len(rows)} timetable rows from {dataset}",
                    extra={"dataset": dataset, "candidate_index": walk.index},
                )
                return to_schedule_rows(rows)

            logger.debug(f"No rows in {dataset}", extra={"dataset": dataset})
            dataset = walk.empty()

        if walk.state is ResolutionState.FAILED:
            self._stats["upstream_failures"] += 1
            logger.error(
                "Timetable lookup failed",
                extra={"school_id": school.school_id, "failures": len(walk.errors)},
            )
            raise walk.errors[-1]

        self._stats["empty_results"] += 1
        logger.info(
            "No timetable rows for period",
            extra={"school_id": school.school_id, "from": window.from_ymd, "to": window.to_ymd},
        )
        return []

    async def resolve_week_schedule(
        self,
        school: SchoolRef,
        anchor: str,
        category_hint: Optional[str] = "",
    ) -> list[ScheduleRow]:
        """Timetable for the Monday-Friday week containing the anchor date."""
        return await self.resolve_schedule(
            school, date_window.week_window(anchor), category_hint
        )

    async def resolve_meal(self, school: SchoolRef, when: When = None) -> list[MealRow]:
        """
        Menu rows for a day or a date window.

        Raises:
            InvalidInputError: Missing identifiers or malformed date
            UpstreamError: The fetch failed after retries
        """
        self._require_school(school)
        window = self._resolve_when(when)
        self._stats["meal_lookups"] += 1

        if window.is_single_day:
            date_params = {"MLSV_YMD": window.from_ymd}
        else:
            date_params = {"MLSV_FROM_YMD": window.from_ymd, "MLSV_TO_YMD": window.to_ymd}

        signature = RequestSignature.build(
            MEAL_DATASET,
            ATPT_OFCDC_SC_CODE=school.office_id,
            SD_SCHUL_CODE=school.school_id,
            **date_params,
        )

        try:
            body = await self._fetch(signature)
        except UpstreamError:
            self._stats["upstream_failures"] += 1
            raise

        rows = to_meal_rows(extract_rows(body, MEAL_DATASET))
        if not rows:
            self._stats["empty_results"] += 1
        return rows

    async def resolve_daily_meal(
        self,
        school: SchoolRef,
        ymd: Optional[str] = None,
    ) -> Optional[MealRow]:
        """First menu entry of a single day, or None when nothing is served."""
        rows = await self.resolve_meal(school, ymd)
        return rows[0] if rows else None

    async def resolve_month_meal(
        self,
        school: SchoolRef,
        year_month: date_window.YearMonth,
    ) -> list[MealRow]:
        """Menu rows for a whole calendar month."""
        return await self.resolve_meal(school, date_window.month_window(year_month))

    async def search_schools(self, name: str) -> list[SchoolInfo]:
        """
        Find schools by (partial) name.

        Raises:
            InvalidInputError: Blank name
            UpstreamError: The fetch failed after retries
        """
        name = (name or "").strip()
        if not name:
            raise InvalidInputError("School name is required", field="name")
        self._stats["school_searches"] += 1

        signature = RequestSignature.build(SCHOOL_DATASET, SCHUL_NM=name)
        try:
            body = await self._fetch(signature)
        except UpstreamError:
            self._stats["upstream_failures"] += 1
            raise

        return to_school_infos(extract_rows(body, SCHOOL_DATASET))

    def get_statistics(self) -> dict:
        """Get orchestrator counters plus cache and client statistics."""
        return {
            "lookups": dict(self._stats),
            "cache_statistics": self.cache.get_statistics(),
            "client_statistics": self.client.get_stats(),
        }

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"LookupOrchestrator(schedule={self._stats['schedule_lookups']}, "
            f"meal={self._stats['meal_lookups']}, "
            f"search={self._stats['school_searches']})"
        )
