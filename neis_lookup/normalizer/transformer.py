"""
Upstream row extraction and normalization.

NEIS wraps every dataset response the same way::

    {"<dataset>": [{"head": [{"list_total_count": N}, {"RESULT": {...}}]},
                   {"row": [{...}, ...]}]}

and answers queries without matches with a bare envelope::

    {"RESULT": {"CODE": "INFO-200", "MESSAGE": "..."}}

Both a missing dataset key and an empty row array mean zero rows.
"""

import logging
from typing import Any, Optional

from neis_lookup.normalizer.schemas import MealRow, ScheduleRow, SchoolInfo

logger = logging.getLogger(__name__)

# Result codes
NO_DATA_CODE = "INFO-200"
SUCCESS_CODE = "INFO-000"

# Upstream field names
TIMETABLE_FIELDS = {
    "date": "ALL_TI_YMD",
    "period": "PERIO",
    "subject": "ITRT_CNTNT",
}

MEAL_FIELDS = {
    "date": "MLSV_YMD",
    "menu": "DDISH_NM",
}

SCHOOL_FIELDS = {
    "school_id": "SD_SCHUL_CODE",
    "office_id": "ATPT_OFCDC_SC_CODE",
    "name": "SCHUL_NM",
    "kind": "SCHUL_KND_SC_NM",
    "address": "ORG_RDNMA",
}


def result_code(body: Any) -> Optional[str]:
    """
    Get the result code of a response body, if it carries one.

    Looks at the bare envelope first, then at the head block of any
    dataset section.
    """
    if not isinstance(body, dict):
        return None

    envelope = body.get("RESULT")
    if isinstance(envelope, dict):
        return envelope.get("CODE")

    for section in body.values():
        if not isinstance(section, list):
            continue
        for block in section:
            if not isinstance(block, dict):
                continue
            for item in block.get("head") or []:
                if isinstance(item, dict) and isinstance(item.get("RESULT"), dict):
                    return item["RESULT"].get("CODE")
    return None


def _section(body: Any, dataset: str) -> Optional[list]:
    if not isinstance(body, dict):
        return None
    section = body.get(dataset)
    return section if isinstance(section, list) else None


def list_total_count(body: Any, dataset: str) -> Optional[int]:
    """Total row count the head block reports across all pages, if present."""
    for block in _section(body, dataset) or []:
        if not isinstance(block, dict):
            continue
        for item in block.get("head") or []:
            if isinstance(item, dict) and "list_total_count" in item:
                try:
                    return int(item["list_total_count"])
                except (TypeError, ValueError):
                    return None
    return None


def row_block(body: Any, dataset: str) -> Optional[dict]:
    """The block holding a dataset's "row" list, or None when absent."""
    for block in _section(body, dataset) or []:
        if isinstance(block, dict) and "row" in block:
            return block
    return None


def extract_rows(body: Any, dataset: str) -> list[dict]:
    """
    Extract the row list for a dataset from a response body.

    Args:
        body: Parsed JSON response
        dataset: Dataset identifier the rows are nested under

    Returns:
        Row dictionaries, empty when the dataset key or rows are absent
    """
    if _section(body, dataset) is None:
        code = result_code(body)
        if code and code != NO_DATA_CODE:
            logger.warning(
                f"Unexpected result code for {dataset}: {code}",
                extra={"dataset": dataset, "code": code},
            )
        return []

    block = row_block(body, dataset)
    if block is None:
        return []
    return [row for row in block.get("row") or [] if isinstance(row, dict)]


def _pick(row: dict, fields: dict[str, str]) -> dict[str, Any]:
    return {target: row.get(source) for target, source in fields.items()}


def to_schedule_rows(rows: list[dict]) -> list[ScheduleRow]:
    """Normalize timetable rows; upstream order is preserved."""
    return [ScheduleRow(**_pick(row, TIMETABLE_FIELDS)) for row in rows]


def to_meal_rows(rows: list[dict]) -> list[MealRow]:
    """Normalize meal rows; upstream order is preserved."""
    return [MealRow(**_pick(row, MEAL_FIELDS)) for row in rows]


def to_school_infos(rows: list[dict]) -> list[SchoolInfo]:
    """Normalize school search rows."""
    return [SchoolInfo(**_pick(row, SCHOOL_FIELDS)) for row in rows]
