"""Harness for operator repair tools.

Every tool is split into three steps:

- ``load``: read the current state from the database into plain dataclasses
- ``plan``: a pure function of (state, params) returning the changes to make
  and a human-readable report
- ``apply``: write the planned changes

Only ``load`` and ``apply`` touch the database, so the repair logic in
``plan`` is unit-testable without a session.
"""

import argparse
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from argufight.models import Belt, User
from argufight.services.settings_manager import SettingsManager

logger = logging.getLogger(__name__)

MAINTENANCE_ACTOR = "maintenance"

# Tables a change may target (admin_settings goes through SettingsManager)
CHANGE_TARGETS = {
    "users": User,
    "belts": Belt,
}


@dataclass(frozen=True)
class Change:
    """One field update on one row."""

    table: str
    row_id: str
    field: str
    before: Any
    after: Any

    def describe(self) -> str:
        before, after = self.before, self.after
        if self.field == "password_hash":
            before, after = "<hidden>", "<new hash>"
        return f"{self.table}[{self.row_id}].{self.field}: {before!r} -> {after!r}"


@dataclass
class RepairOutcome:
    """What a tool found and what it wants to change."""

    changes: list[Change] = field(default_factory=list)
    report: list[str] = field(default_factory=list)
    exit_code: int = 0

    def say(self, line: str = "") -> "RepairOutcome":
        self.report.append(line)
        return self

    @classmethod
    def not_found(cls, message: str) -> "RepairOutcome":
        return cls(report=[f"Not found: {message}"])

    @classmethod
    def invalid(cls, message: str) -> "RepairOutcome":
        return cls(report=[f"Invalid input: {message}"], exit_code=1)


class MaintenanceTool(ABC):
    """Base class for one ``argufight-admin`` subcommand."""

    name: str = ""
    help: str = ""

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        """Register positional arguments and options."""
        pass

    @abstractmethod
    async def load(self, db: AsyncSession, args: argparse.Namespace) -> Any:
        """Read the state the plan needs."""
        pass

    @abstractmethod
    def plan(self, state: Any, args: argparse.Namespace) -> RepairOutcome:
        """Decide what to change. Must not do I/O."""
        pass

    async def apply(self, db: AsyncSession, outcome: RepairOutcome) -> None:
        """Write planned changes and commit once."""
        for change in outcome.changes:
            if change.table == "admin_settings":
                await SettingsManager(db).set(change.row_id, change.after, updated_by=MAINTENANCE_ACTOR)
                continue

            model = CHANGE_TARGETS[change.table]
            row = await db.get(model, change.row_id)
            if row is None:
                raise LookupError(f"{change.table} row {change.row_id} disappeared before apply")
            setattr(row, change.field, change.after)
        await db.commit()

    async def read_back(self, db: AsyncSession, change: Change) -> Any:
        """Current stored value of the field a change targeted."""
        if change.table == "admin_settings":
            return await SettingsManager(db).get(change.row_id)
        row = await db.get(CHANGE_TARGETS[change.table], change.row_id, populate_existing=True)
        return None if row is None else getattr(row, change.field)

    async def report_stored(self, db: AsyncSession, outcome: RepairOutcome) -> None:
        """Re-read every changed field and report what the database now holds."""
        outcome.say("Post-fix state:")
        for change in outcome.changes:
            stored = await self.read_back(db, change)
            if change.field == "password_hash":
                shown = "<updated>" if stored == change.after else "<unchanged>"
            else:
                shown = repr(stored)
            line = f"  {change.table}[{change.row_id}].{change.field} = {shown}"
            if stored != change.after:
                if change.field != "password_hash":
                    line += f" (expected {change.after!r})"
                outcome.exit_code = 1
            outcome.say(line)

    async def run(self, db: AsyncSession, args: argparse.Namespace, dry_run: bool = False) -> RepairOutcome:
        """load -> plan -> (apply). Returns the outcome for the caller to print."""
        state = await self.load(db, args)
        outcome = self.plan(state, args)

        if outcome.changes:
            outcome.say()
            outcome.say(f"Planned changes ({len(outcome.changes)}):")
            for change in outcome.changes:
                outcome.say(f"  {change.describe()}")

            if dry_run:
                outcome.say("Dry run: no changes written.")
            else:
                await self.apply(db, outcome)
                logger.info(f"{self.name}: applied {len(outcome.changes)} change(s)")
                outcome.say(f"Applied {len(outcome.changes)} change(s).")
                await self.report_stored(db, outcome)

        return outcome
