"""
NEIS School Lookup - Main Package

Timetable and cafeteria menu lookup against the NEIS Open API with
dataset resolution, retrying fetches and an in-process TTL cache.

Modules:
    clients: Retrying HTTP client for NEIS dataset endpoints
    orchestrator: Category resolution, caching and lookup coordination
    normalizer: Row schemas and upstream row normalization
    utils: Date windows, logging and exceptions
"""

__version__ = "0.1.0"
__author__ = "NEIS Lookup Team"

__all__ = [
    "__version__",
    "__author__",
]
