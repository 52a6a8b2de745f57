"""Balance engine command line interface.

Usage:
    python -m balance_engine init-db
    python -m balance_engine balance --employee-id X --from 2024-01-01 --to 2024-01-31
    python -m balance_engine carryover --employee-id X --year 2023
    python -m balance_engine finalize --from 2024-01-01 --to 2024-01-31
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import date
from typing import Any, Awaitable, Callable
from uuid import UUID

from balance_engine.calculators.weeks import Period
from balance_engine.config import Settings, get_settings
from balance_engine.context import RequestContext
from balance_engine.database import create_all, dispose_db, init_db
from balance_engine.services import BalanceService, BillingPeriodService, CarryoverService
from balance_engine.stores import SqlAlchemyStore

logger = logging.getLogger(__name__)


def parse_date(s: str) -> date:
    """Parse ISO date string."""
    return date.fromisoformat(s)


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


class BalanceCli:
    """Operator tools on top of the SQL store."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="python -m balance_engine",
            description="Balance hours and carryover tools",
        )
        parser.add_argument("--user", help="Recorded as created_by (default: system)")
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser("init-db", help="Create missing tables")

        balance = subparsers.add_parser("balance", help="Compute period figures of one employee")
        balance.add_argument("--employee-id", type=parse_uuid, required=True)
        balance.add_argument("--from", dest="start", type=parse_date, required=True)
        balance.add_argument("--to", dest="end", type=parse_date, required=True)
        balance.add_argument(
            "--value-type",
            action="append",
            dest="value_types",
            help="Value type to report (repeatable, default: all tracked)",
        )

        carryover = subparsers.add_parser(
            "carryover", help="Get or compute the carryover out of an ISO year"
        )
        carryover.add_argument("--employee-id", type=parse_uuid, required=True)
        carryover.add_argument("--year", type=int, required=True)

        finalize = subparsers.add_parser("finalize", help="Finalize a billing period")
        finalize.add_argument("--from", dest="start", type=parse_date, required=True)
        finalize.add_argument("--to", dest="end", type=parse_date, required=True)

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        handlers: dict[str, Callable[[argparse.Namespace], Awaitable[Any]]] = {
            "init-db": self._cmd_init_db,
            "balance": self._cmd_balance,
            "carryover": self._cmd_carryover,
            "finalize": self._cmd_finalize,
        }
        try:
            output = asyncio.run(self._run(handlers[parsed.command], parsed))
        except Exception as e:
            logger.debug("Command %s failed", parsed.command, exc_info=True)
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

        print(json.dumps(output, indent=2))
        return 0

    async def _run(
        self,
        handler: Callable[[argparse.Namespace], Awaitable[Any]],
        args: argparse.Namespace,
    ) -> Any:
        try:
            return await handler(args)
        finally:
            await dispose_db()

    def _store(self) -> SqlAlchemyStore:
        _, factory = init_db()
        return SqlAlchemyStore(factory, precision=self.settings.hours_precision)

    def _context(self, args: argparse.Namespace) -> RequestContext:
        if args.user is None:
            return RequestContext.system(self.settings)
        return RequestContext(user=args.user, process=self.settings.engine_process)

    async def _cmd_init_db(self, args: argparse.Namespace) -> dict[str, str]:
        engine, _ = init_db()
        await create_all(engine)
        return {"status": "ok"}

    async def _cmd_balance(self, args: argparse.Namespace) -> dict[str, Any]:
        period = Period(args.start, args.end)
        service = BalanceService(self._store(), self.settings)
        values = await service.compute_balance(
            self._context(args), args.employee_id, period, args.value_types
        )
        return {
            "employee_id": str(args.employee_id),
            "period": str(period),
            "values": [v.to_dict() for v in values],
        }

    async def _cmd_carryover(self, args: argparse.Namespace) -> dict[str, Any]:
        service = CarryoverService(self._store(), self.settings)
        hours = await service.get_or_compute(self._context(args), args.employee_id, args.year)
        return {"employee_id": str(args.employee_id), "year": args.year, "carryover": str(hours)}

    async def _cmd_finalize(self, args: argparse.Namespace) -> dict[str, Any]:
        service = BillingPeriodService(self._store(), self.settings)
        snapshot = await service.finalize_billing_period(
            self._context(args), Period(args.start, args.end)
        )
        return {
            "billing_period_id": str(snapshot.period.billing_period_id),
            "start_date": snapshot.period.start_date.isoformat(),
            "end_date": snapshot.period.end_date.isoformat(),
            "employees": {
                str(employee_id): [v.to_dict() for v in values.values()]
                for employee_id, values in snapshot.values.items()
            },
        }


def main(args: list[str] | None = None) -> int:
    """CLI entry point."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return BalanceCli(settings).run(args)


if __name__ == "__main__":
    sys.exit(main())
