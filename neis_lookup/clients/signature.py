"""
Request signatures for NEIS dataset queries.

A signature is the fully-resolved query (dataset plus parameters) and
doubles as the cache key, so it must be canonical: logically identical
queries always produce byte-identical keys.
"""

from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode


@dataclass(frozen=True)
class RequestSignature:
    """Canonical upstream query.

    Attributes:
        dataset: Dataset identifier (e.g. "hisTimetable")
        params: Sorted (name, value) pairs, all strings, no empty values
    """

    dataset: str
    params: tuple[tuple[str, str], ...] = ()

    @classmethod
    def build(cls, dataset: str, **params: Any) -> "RequestSignature":
        """
        Build a signature, dropping empty parameters and sorting the rest.

        Example:
            >>> RequestSignature.build("mealServiceDietInfo", SD_SCHUL_CODE="7010569",
            ...                        ATPT_OFCDC_SC_CODE="B10", MLSV_YMD="20240304").cache_key
            'mealServiceDietInfo?ATPT_OFCDC_SC_CODE=B10&MLSV_YMD=20240304&SD_SCHUL_CODE=7010569'
        """
        cleaned = []
        for name, value in params.items():
            if value is None:
                continue
            value = str(value).strip()
            if value:
                cleaned.append((name, value))
        return cls(dataset=dataset, params=tuple(sorted(cleaned)))

    @property
    def cache_key(self) -> str:
        """Stable key used by the response cache."""
        return f"{self.dataset}?{urlencode(self.params)}"

    def as_dict(self) -> dict[str, str]:
        return dict(self.params)

    def __str__(self) -> str:
        return self.cache_key
