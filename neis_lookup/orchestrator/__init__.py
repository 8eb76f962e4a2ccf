"""
Orchestrator Module

Dataset resolution, response caching and lookup coordination.

Components:
    - CacheManager: In-memory TTL cache with miss coalescing
    - CacheSweeper: APScheduler-based periodic cache eviction
    - candidates_for: Ordered timetable dataset candidates for a category hint
    - LookupOrchestrator: Timetable, meal and school lookups
"""

__all__ = [
    "CacheManager",
    "CacheSweeper",
    "SchoolLevel",
    "candidates_for",
    "LookupOrchestrator",
]

# Lazy imports to avoid circular dependencies
def __getattr__(name):
    if name == "CacheManager":
        from .cache_manager import CacheManager
        return CacheManager
    elif name == "CacheSweeper":
        from .scheduler import CacheSweeper
        return CacheSweeper
    elif name == "SchoolLevel":
        from .category_resolver import SchoolLevel
        return SchoolLevel
    elif name == "candidates_for":
        from .category_resolver import candidates_for
        return candidates_for
    elif name == "LookupOrchestrator":
        from .lookup import LookupOrchestrator
        return LookupOrchestrator
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
