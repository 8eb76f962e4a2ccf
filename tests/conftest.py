"""
Pytest configuration and shared fixtures for NEIS School Lookup tests.

Provides:
    - Fake clocks for TTL and "today" calculations
    - NEIS response body builders
    - Fake upstream client routing by dataset
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from neis_lookup.clients.signature import RequestSignature
from neis_lookup.normalizer.schemas import SchoolRef
from neis_lookup.orchestrator.cache_manager import CacheManager


# ========== Clock Fixtures ==========


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kst_monday_clock() -> Callable[[], datetime]:
    """Wall clock at 2024-03-10 16:00 UTC, already Monday 01:00 in KST."""
    return lambda: datetime(2024, 3, 10, 16, 0, tzinfo=timezone.utc)


# ========== NEIS Body Fixtures ==========


def neis_body(
    dataset: str, rows: List[Dict[str, Any]], total: Optional[int] = None
) -> Dict[str, Any]:
    """
    Build a NEIS dataset response.

    Args:
        dataset: Dataset identifier the rows are nested under
        rows: Raw upstream rows
        total: list_total_count to report (defaults to len(rows))

    Returns:
        Response body as the upstream returns it
    """
    return {
        dataset: [
            {
                "head": [
                    {"list_total_count": len(rows) if total is None else total},
                    {"RESULT": {"CODE": "INFO-000", "MESSAGE": "정상 처리되었습니다."}},
                ]
            },
            {"row": rows},
        ]
    }


def no_data_body() -> Dict[str, Any]:
    """Envelope NEIS returns when a query matches nothing."""
    return {"RESULT": {"CODE": "INFO-200", "MESSAGE": "해당하는 데이터가 없습니다."}}


def timetable_row(ymd: str, period: str, subject: str) -> Dict[str, Any]:
    return {
        "ATPT_OFCDC_SC_CODE": "B10",
        "SD_SCHUL_CODE": "7010569",
        "ALL_TI_YMD": ymd,
        "GRADE": "1",
        "CLASS_NM": "3",
        "PERIO": period,
        "ITRT_CNTNT": subject,
    }


@pytest.fixture
def school() -> SchoolRef:
    return SchoolRef(school_id="7010569", office_id="B10", grade="1", class_no="3")


@pytest.fixture
def cache(fake_clock) -> CacheManager:
    return CacheManager(ttl_seconds=300, clock=fake_clock)


# ========== Fake Client ==========


class FakeNeisClient:
    """
    Stand-in for NeisClient routing fetches by dataset.

    Responses map a dataset to a body or an exception instance; unknown
    datasets answer with the no-data envelope.
    """

    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        self.responses = responses or {}
        self.fetch = AsyncMock(side_effect=self._respond)

    async def _respond(self, signature: RequestSignature, policy=None) -> Dict[str, Any]:
        response = self.responses.get(signature.dataset, no_data_body())
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def fetched_datasets(self) -> List[str]:
        return [call.args[0].dataset for call in self.fetch.call_args_list]

    @property
    def fetched_signatures(self) -> List[RequestSignature]:
        return [call.args[0] for call in self.fetch.call_args_list]

    def get_stats(self) -> Dict[str, int]:
        return {"requests_made": self.fetch.call_count}


@pytest.fixture
def fake_client() -> FakeNeisClient:
    return FakeNeisClient()
