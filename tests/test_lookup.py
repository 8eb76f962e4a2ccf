"""
Unit tests for LookupOrchestrator.

Tests candidate fallback, date parameter selection, caching of upstream
bodies and the failure policy.
"""

import pytest

from neis_lookup.clients.neis_client import ServerError
from neis_lookup.normalizer.schemas import DateWindow, SchoolRef
from neis_lookup.orchestrator.lookup import (
    CandidateWalk,
    LookupOrchestrator,
    ResolutionState,
)
from neis_lookup.utils.exceptions import InvalidInputError
from tests.conftest import FakeNeisClient, neis_body, timetable_row


HIGH_SCHOOL_ROWS = [
    timetable_row("20240304", "1", "국어"),
    timetable_row("20240304", "2", "수학"),
]


@pytest.fixture
def orchestrator(fake_client, cache, kst_monday_clock):
    return LookupOrchestrator(fake_client, cache, clock=kst_monday_clock)


def make_orchestrator(responses, cache, clock):
    client = FakeNeisClient(responses)
    return client, LookupOrchestrator(client, cache, clock=clock)


class TestCandidateWalk:
    """Test walk state transitions."""

    def test_found_on_first(self):
        walk = CandidateWalk(["a", "b"])

        assert walk.state is ResolutionState.PENDING
        assert walk.start() == "a"
        assert walk.current == "a"
        walk.found()

        assert walk.state is ResolutionState.FOUND
        assert walk.finished
        assert walk.current is None

    def test_exhausted(self):
        walk = CandidateWalk(["a", "b"])
        walk.start()

        assert walk.empty() == "b"
        assert walk.empty() is None
        assert walk.state is ResolutionState.EXHAUSTED

    def test_failed_when_any_candidate_errored(self):
        walk = CandidateWalk(["a", "b"])
        walk.start()
        walk.failed(ServerError("Server error: 503"))
        walk.empty()

        assert walk.state is ResolutionState.FAILED
        assert len(walk.errors) == 1

    def test_invalid_transitions(self):
        walk = CandidateWalk(["a"])

        with pytest.raises(RuntimeError):
            walk.found()

        walk.start()
        walk.found()
        with pytest.raises(RuntimeError):
            walk.empty()

    def test_requires_candidates(self):
        with pytest.raises(ValueError):
            CandidateWalk([])


class TestResolveSchedule:
    """Test timetable fallback across datasets."""

    @pytest.mark.asyncio
    async def test_second_candidate_wins(self, school, cache, kst_monday_clock):
        client, lookup = make_orchestrator(
            {"hisTimetable": neis_body("hisTimetable", HIGH_SCHOOL_ROWS)},
            cache,
            kst_monday_clock,
        )

        rows = await lookup.resolve_schedule(school, "20240304", "중학교")

        assert client.fetched_datasets == ["misTimetable", "elsTimetable", "hisTimetable"]
        assert [(r.period, r.subject) for r in rows] == [("1", "국어"), ("2", "수학")]
        assert lookup.last_walk.state is ResolutionState.FOUND
        assert lookup.last_walk.index == 2

    @pytest.mark.asyncio
    async def test_best_guess_stops_walk(self, school, cache, kst_monday_clock):
        client, lookup = make_orchestrator(
            {"hisTimetable": neis_body("hisTimetable", HIGH_SCHOOL_ROWS)},
            cache,
            kst_monday_clock,
        )

        rows = await lookup.resolve_schedule(school, "20240304", "고등학교")

        assert client.fetched_datasets == ["hisTimetable"]
        assert len(rows) == 2

    @pytest.mark.asyncio
    async def test_all_empty_returns_empty_list(self, orchestrator, fake_client, school):
        rows = await orchestrator.resolve_schedule(school, "20240304")

        assert rows == []
        assert fake_client.fetched_datasets == [
            "elsTimetable",
            "misTimetable",
            "hisTimetable",
            "spsTimetable",
        ]
        assert orchestrator.last_walk.state is ResolutionState.EXHAUSTED
        assert orchestrator.get_statistics()["lookups"]["empty_results"] == 1

    @pytest.mark.asyncio
    async def test_empty_row_array_counts_as_empty(self, school, cache, kst_monday_clock):
        client, lookup = make_orchestrator(
            {
                "elsTimetable": neis_body("elsTimetable", []),
                "misTimetable": neis_body("misTimetable", HIGH_SCHOOL_ROWS),
            },
            cache,
            kst_monday_clock,
        )

        rows = await lookup.resolve_schedule(school, "20240304")

        assert client.fetched_datasets == ["elsTimetable", "misTimetable"]
        assert len(rows) == 2

    @pytest.mark.asyncio
    async def test_failed_candidate_skipped(self, school, cache, kst_monday_clock):
        client, lookup = make_orchestrator(
            {
                "elsTimetable": ServerError("Server error: 503", status_code=503),
                "misTimetable": neis_body("misTimetable", HIGH_SCHOOL_ROWS),
            },
            cache,
            kst_monday_clock,
        )

        rows = await lookup.resolve_schedule(school, "20240304")

        assert len(rows) == 2
        assert lookup.get_statistics()["lookups"]["candidate_failures"] == 1

    @pytest.mark.asyncio
    async def test_all_candidates_fail(self, school, cache, kst_monday_clock):
        errors = {
            dataset: ServerError(f"Server error: {dataset}", status_code=503)
            for dataset in ("elsTimetable", "misTimetable", "hisTimetable", "spsTimetable")
        }
        client, lookup = make_orchestrator(errors, cache, kst_monday_clock)

        with pytest.raises(ServerError) as exc_info:
            await lookup.resolve_schedule(school, "20240304")

        assert exc_info.value is errors["spsTimetable"]
        assert lookup.last_walk.state is ResolutionState.FAILED
        assert lookup.get_statistics()["lookups"]["upstream_failures"] == 1

    @pytest.mark.asyncio
    async def test_failure_with_remaining_empty_raises(self, school, cache, kst_monday_clock):
        failure = ServerError("Server error: 503", status_code=503)
        client, lookup = make_orchestrator({"hisTimetable": failure}, cache, kst_monday_clock)

        with pytest.raises(ServerError):
            await lookup.resolve_schedule(school, "20240304")

        assert len(client.fetched_datasets) == 4

    @pytest.mark.asyncio
    async def test_single_day_parameters(self, orchestrator, fake_client, school):
        await orchestrator.resolve_schedule(school, "2024-03-04", "초등학교")

        params = fake_client.fetched_signatures[0].as_dict()
        assert params == {
            "ALL_TI_YMD": "20240304",
            "ATPT_OFCDC_SC_CODE": "B10",
            "CLASS_NM": "3",
            "GRADE": "1",
            "SD_SCHUL_CODE": "7010569",
        }

    @pytest.mark.asyncio
    async def test_range_parameters(self, orchestrator, fake_client):
        school = SchoolRef(school_id="7010569", office_id="B10")
        window = DateWindow(from_ymd="20240304", to_ymd="20240308")

        await orchestrator.resolve_schedule(school, window, "초등학교")

        params = fake_client.fetched_signatures[0].as_dict()
        assert params["TI_FROM_YMD"] == "20240304"
        assert params["TI_TO_YMD"] == "20240308"
        assert "ALL_TI_YMD" not in params
        assert "GRADE" not in params
        assert "CLASS_NM" not in params

    @pytest.mark.asyncio
    async def test_defaults_to_today(self, orchestrator, fake_client, school):
        await orchestrator.resolve_schedule(school, None, "초등학교")

        assert fake_client.fetched_signatures[0].as_dict()["ALL_TI_YMD"] == "20240311"

    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(self, school, cache, kst_monday_clock):
        client, lookup = make_orchestrator(
            {"hisTimetable": neis_body("hisTimetable", HIGH_SCHOOL_ROWS)},
            cache,
            kst_monday_clock,
        )

        first = await lookup.resolve_schedule(school, "20240304", "고등학교")
        second = await lookup.resolve_schedule(school, "20240304", "고등학교")

        assert first == second
        assert client.fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_candidates_cached(self, orchestrator, fake_client, school):
        await orchestrator.resolve_schedule(school, "20240304")
        await orchestrator.resolve_schedule(school, "20240304")

        assert fake_client.fetch.await_count == 4

    @pytest.mark.asyncio
    async def test_failed_candidate_refetched(self, school, cache, kst_monday_clock):
        client, lookup = make_orchestrator(
            {
                "elsTimetable": ServerError("Server error: 503", status_code=503),
                "misTimetable": neis_body("misTimetable", HIGH_SCHOOL_ROWS),
            },
            cache,
            kst_monday_clock,
        )

        await lookup.resolve_schedule(school, "20240304")
        await lookup.resolve_schedule(school, "20240304")

        assert client.fetched_datasets == [
            "elsTimetable",
            "misTimetable",
            "elsTimetable",
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "school_kwargs,field",
        [
            ({"school_id": "", "office_id": "B10"}, "school_id"),
            ({"school_id": "7010569", "office_id": "  "}, "office_id"),
        ],
    )
    async def test_missing_identifiers(self, orchestrator, fake_client, school_kwargs, field):
        with pytest.raises(InvalidInputError) as exc_info:
            await orchestrator.resolve_schedule(SchoolRef(**school_kwargs), "20240304")

        assert exc_info.value.field == field
        fake_client.fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_date(self, orchestrator, fake_client, school):
        with pytest.raises(InvalidInputError):
            await orchestrator.resolve_schedule(school, "2024-02-30")

        fake_client.fetch.assert_not_called()


class TestResolveWeekSchedule:
    """Test week-aligned timetable lookups."""

    @pytest.mark.asyncio
    async def test_sunday_anchor(self, orchestrator, fake_client, school):
        await orchestrator.resolve_week_schedule(school, "20240310", "고등학교")

        params = fake_client.fetched_signatures[0].as_dict()
        assert fake_client.fetched_datasets[0] == "hisTimetable"
        assert params["TI_FROM_YMD"] == "20240304"
        assert params["TI_TO_YMD"] == "20240308"


class TestResolveMeal:
    """Test meal lookups."""

    MEAL_ROWS = [
        {"MLSV_YMD": "20240304", "DDISH_NM": "쌀밥<br/>미역국"},
        {"MLSV_YMD": "20240305", "DDISH_NM": None},
    ]

    @pytest.mark.asyncio
    async def test_single_day(self, school, cache, kst_monday_clock):
        client, lookup = make_orchestrator(
            {"mealServiceDietInfo": neis_body("mealServiceDietInfo", self.MEAL_ROWS[:1])},
            cache,
            kst_monday_clock,
        )

        rows = await lookup.resolve_meal(school, "20240304")

        assert [(r.date, r.menu) for r in rows] == [("20240304", "쌀밥<br/>미역국")]
        params = client.fetched_signatures[0].as_dict()
        assert params == {
            "ATPT_OFCDC_SC_CODE": "B10",
            "MLSV_YMD": "20240304",
            "SD_SCHUL_CODE": "7010569",
        }

    @pytest.mark.asyncio
    async def test_month(self, school, cache, kst_monday_clock):
        client, lookup = make_orchestrator(
            {"mealServiceDietInfo": neis_body("mealServiceDietInfo", self.MEAL_ROWS)},
            cache,
            kst_monday_clock,
        )

        rows = await lookup.resolve_month_meal(school, "2024-02")

        params = client.fetched_signatures[0].as_dict()
        assert params["MLSV_FROM_YMD"] == "20240201"
        assert params["MLSV_TO_YMD"] == "20240229"
        assert rows[1].menu == ""

    @pytest.mark.asyncio
    async def test_daily_meal_defaults_to_today(self, orchestrator, fake_client, school):
        meal = await orchestrator.resolve_daily_meal(school)

        assert meal is None
        assert fake_client.fetched_signatures[0].as_dict()["MLSV_YMD"] == "20240311"

    @pytest.mark.asyncio
    async def test_daily_meal_first_row(self, school, cache, kst_monday_clock):
        _, lookup = make_orchestrator(
            {"mealServiceDietInfo": neis_body("mealServiceDietInfo", self.MEAL_ROWS)},
            cache,
            kst_monday_clock,
        )

        meal = await lookup.resolve_daily_meal(school, "20240304")

        assert meal.menu == "쌀밥<br/>미역국"

    @pytest.mark.asyncio
    async def test_upstream_failure_propagates(self, school, cache, kst_monday_clock):
        _, lookup = make_orchestrator(
            {"mealServiceDietInfo": ServerError("Server error: 503", status_code=503)},
            cache,
            kst_monday_clock,
        )

        with pytest.raises(ServerError):
            await lookup.resolve_meal(school, "20240304")

        assert lookup.get_statistics()["lookups"]["upstream_failures"] == 1


class TestSearchSchools:
    """Test school search."""

    @pytest.mark.asyncio
    async def test_search(self, cache, kst_monday_clock):
        body = neis_body(
            "schoolInfo",
            [
                {
                    "SD_SCHUL_CODE": "7010569",
                    "ATPT_OFCDC_SC_CODE": "B10",
                    "SCHUL_NM": "서울고등학교",
                    "SCHUL_KND_SC_NM": "고등학교",
                    "ORG_RDNMA": "서울특별시 서초구 효령로 197",
                }
            ],
        )
        client, lookup = make_orchestrator({"schoolInfo": body}, cache, kst_monday_clock)

        schools = await lookup.search_schools(" 서울고 ")

        assert client.fetched_signatures[0].as_dict() == {"SCHUL_NM": "서울고"}
        assert schools[0].name == "서울고등학교"
        assert schools[0].kind == "고등학교"
        assert schools[0].to_ref(grade=1).grade == "1"

    @pytest.mark.asyncio
    async def test_no_match(self, orchestrator):
        assert await orchestrator.search_schools("없는학교") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "   ", None])
    async def test_blank_name(self, orchestrator, fake_client, name):
        with pytest.raises(InvalidInputError):
            await orchestrator.search_schools(name)

        fake_client.fetch.assert_not_called()


class TestStatistics:
    """Test statistics reporting."""

    @pytest.mark.asyncio
    async def test_get_statistics(self, orchestrator, school):
        await orchestrator.resolve_meal(school, "20240304")
        stats = orchestrator.get_statistics()

        assert stats["lookups"]["meal_lookups"] == 1
        assert stats["cache_statistics"]["misses"] == 1
        assert stats["client_statistics"]["requests_made"] == 1
        assert "meal=1" in repr(orchestrator)
