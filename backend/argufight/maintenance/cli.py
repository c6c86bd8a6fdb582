"""Command-line entry point for the maintenance tools.

Usage::

    argufight-admin check-feature tournaments
    argufight-admin set-setting VERDICT_TIE_THRESHOLD 7 --dry-run
    argufight-admin fix-user-stats
"""

import argparse
import asyncio
import logging
import sys

from argufight.config import settings as app_settings
from argufight.database import db_session, init_db
from argufight.maintenance.base import MaintenanceTool, RepairOutcome
from argufight.maintenance.tools import TOOLS

logger = logging.getLogger(__name__)


def build_parser(tools: list[MaintenanceTool] | None = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="argufight-admin",
        description="Inspect and repair ArguFight settings and records.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    for tool in tools if tools is not None else TOOLS:
        sub = subparsers.add_parser(tool.name, help=tool.help, description=tool.help)
        tool.add_arguments(sub)
        sub.add_argument(
            "--dry-run",
            action="store_true",
            help="Print the planned changes without writing them",
        )
        sub.set_defaults(tool=tool)

    return parser


async def run_tool(tool: MaintenanceTool, args: argparse.Namespace) -> RepairOutcome:
    await init_db()
    async with db_session() as db:
        return await tool.run(db, args, dry_run=args.dry_run)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=getattr(logging, app_settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    args = build_parser().parse_args(argv)

    try:
        outcome = asyncio.run(run_tool(args.tool, args))
    except Exception as e:
        logger.exception(f"{args.command} failed: {e}")
        return 1

    for line in outcome.report:
        print(line)
    return outcome.exit_code


if __name__ == "__main__":
    sys.exit(main())
