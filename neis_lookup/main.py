"""
NEIS School Lookup - CLI Entry Point.

Command-line interface for school search, class timetables and cafeteria
menus from the NEIS Open API. Results are printed as JSON.

Usage:
    # Find a school (the "kind" field doubles as --level hint)
    python -m neis_lookup.main search 서울고등학교

    # Today's timetable for grade 1 class 3
    python -m neis_lookup.main timetable --school 7010569 --office B10 --grade 1 --class 3 --level 고등학교

    # Monday-Friday timetable for the week containing a date
    python -m neis_lookup.main timetable --school 7010569 --office B10 --grade 1 --class 3 --week 2024-03-10

    # Today's menu, or a whole month
    python -m neis_lookup.main meal --school 7010569 --office B10
    python -m neis_lookup.main meal --school 7010569 --office B10 --month 2024-03

    # Configuration check
    python -m neis_lookup.main status

Exit codes:
    0 success (including "no data for this period"), 1 upstream unreachable,
    2 invalid input
"""

import argparse
import asyncio
import logging
import sys
from typing import Any, Optional

import orjson
from pydantic import BaseModel

from neis_lookup.clients.neis_client import NeisClient, NeisClientConfig
from neis_lookup.config import AppConfig, CacheConfig, NeisConfig
from neis_lookup.normalizer.schemas import SchoolRef
from neis_lookup.orchestrator.cache_manager import CacheManager
from neis_lookup.orchestrator.lookup import LookupOrchestrator
from neis_lookup.orchestrator.scheduler import CacheSweeper
from neis_lookup.utils import date_window
from neis_lookup.utils.exceptions import InvalidInputError, UpstreamError
from neis_lookup.utils.logger import setup_logger

logger = setup_logger("neis_lookup")

EXIT_OK = 0
EXIT_UPSTREAM = 1
EXIT_INVALID = 2


def dump_json(payload: Any) -> str:
    """Serialize models (or lists of them) to indented JSON."""
    def default(obj):
        if isinstance(obj, BaseModel):
            return obj.model_dump()
        raise TypeError

    return orjson.dumps(payload, default=default, option=orjson.OPT_INDENT_2).decode("utf-8")


class LookupCLI:
    """
    Command-line interface for NEIS School Lookup.

    Features:
        - School search by name
        - Daily or weekly timetables with dataset auto-resolution
        - Daily or monthly cafeteria menus
        - Configuration status report
    """

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()
        self.args: Optional[argparse.Namespace] = None

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create and configure argument parser.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="neis-lookup",
            description="School timetable and cafeteria menu lookup (NEIS Open API).",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Configuration:
  Set environment variables in .env file:
    - NEIS_API_KEY: NEIS Open API key (optional, keyless calls are limited)
    - CACHE_TTL_SECONDS: Response cache TTL (default: 300)
    - MAX_RETRIES: Attempts per upstream request (default: 3)
            """,
        )

        parser.add_argument(
            "--log-level",
            type=str,
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Override default log level",
        )
        parser.add_argument(
            "--version",
            action="version",
            version=f"%(prog)s {AppConfig.VERSION}",
        )

        subparsers = parser.add_subparsers(dest="command", required=True)

        search = subparsers.add_parser("search", help="Find schools by name")
        search.add_argument("name", help="School name (partial match)")

        timetable = subparsers.add_parser("timetable", help="Class timetable")
        self._add_school_arguments(timetable)
        timetable.add_argument("--grade", help="Grade number")
        timetable.add_argument("--class", dest="class_no", help="Class number")
        timetable.add_argument(
            "--level",
            default="",
            help="School kind hint (e.g. 고등학교, middle, his)",
        )
        when = timetable.add_mutually_exclusive_group()
        when.add_argument("--date", help="Single day (YYYYMMDD, default: today)")
        when.add_argument("--week", metavar="DATE", help="Week containing DATE (Mon-Fri)")

        meal = subparsers.add_parser("meal", help="Cafeteria menu")
        self._add_school_arguments(meal)
        when = meal.add_mutually_exclusive_group()
        when.add_argument("--date", help="Single day (YYYYMMDD, default: today)")
        when.add_argument("--month", help="Whole month (YYYY-MM)")

        subparsers.add_parser("status", help="Validate configuration")

        return parser

    @staticmethod
    def _add_school_arguments(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--school", required=True, help="School code (SD_SCHUL_CODE)")
        parser.add_argument("--office", required=True, help="Office code (ATPT_OFCDC_SC_CODE)")

    def _school_ref(self) -> SchoolRef:
        return SchoolRef(
            school_id=self.args.school,
            office_id=self.args.office,
            grade=getattr(self.args, "grade", None),
            class_no=getattr(self.args, "class_no", None),
        )

    def _status(self) -> dict:
        is_valid, errors = AppConfig.validate()
        return {
            "app": AppConfig.APP_NAME,
            "version": AppConfig.VERSION,
            "valid": is_valid,
            "errors": errors,
            "api_key_configured": NeisConfig.has_api_key(),
            "base_url": NeisConfig.BASE_URL,
            "cache_ttl_seconds": CacheConfig.TTL_SECONDS,
            "today": date_window.today(),
        }

    async def run_command(self, lookup: LookupOrchestrator) -> Any:
        """
        Execute the parsed command against an orchestrator.

        Returns:
            JSON-serializable payload
        """
        command = self.args.command

        if command == "search":
            return await lookup.search_schools(self.args.name)

        if command == "timetable":
            school = self._school_ref()
            if self.args.week:
                return await lookup.resolve_week_schedule(
                    school, self.args.week, self.args.level
                )
            return await lookup.resolve_schedule(school, self.args.date, self.args.level)

        if command == "meal":
            school = self._school_ref()
            if self.args.month:
                return await lookup.resolve_month_meal(school, self.args.month)
            return await lookup.resolve_daily_meal(school, self.args.date)

        raise ValueError(f"Unknown command: {command}")

    async def _run_lookup(self) -> Any:
        cache = CacheManager()
        async with NeisClient(NeisClientConfig.from_env()) as client:
            with CacheSweeper(cache):
                lookup = LookupOrchestrator(client, cache)
                result = await self.run_command(lookup)
                logger.debug(f"Lookup statistics: {lookup.get_statistics()}")
                return result

    def run(self, argv: Optional[list[str]] = None) -> int:
        """
        Parse arguments and run the command.

        Returns:
            Process exit code
        """
        self.args = self.parser.parse_args(argv)

        if self.args.log_level:
            level = getattr(logging, self.args.log_level)
            logger.setLevel(level)
            for handler in logger.handlers:
                if not isinstance(handler, logging.FileHandler):
                    handler.setLevel(level)

        if self.args.command == "status":
            print(dump_json(self._status()))
            return EXIT_OK

        try:
            result = asyncio.run(self._run_lookup())
        except InvalidInputError as e:
            logger.error(f"Invalid input: {e}")
            print(dump_json({"error": "invalid_input", "message": str(e)}))
            return EXIT_INVALID
        except UpstreamError as e:
            logger.error(f"Upstream unreachable: {e}")
            print(dump_json({"error": "upstream_unavailable", "message": e.message}))
            return EXIT_UPSTREAM

        print(dump_json(result))
        return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    """Console entry point."""
    return LookupCLI().run(argv)


if __name__ == "__main__":
    sys.exit(main())
