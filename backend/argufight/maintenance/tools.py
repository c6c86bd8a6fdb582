"""Operator repair and diagnostic tools."""

import argparse
import os
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from argufight.config import settings as app_settings
from argufight.errors import SettingValidationError
from argufight.maintenance.base import Change, MaintenanceTool, RepairOutcome
from argufight.models import Belt, Debate, Statement, User
from argufight.models.competition import BELT_VACANT
from argufight.models.debate import FINISHED_STATUSES, STATUS_WAITING
from argufight.models.user import DEFAULT_AI_RESPONSE_DELAY_MS
from argufight.services.integrations import PROVIDER_CREDENTIALS
from argufight.services.integrations.stripe import key_mode
from argufight.services.settings_manager import AI_DELAY_KEYS, SettingsManager
from argufight.services.settings_registry import BOOL, registry
from argufight.services.user_auth import MIN_PASSWORD_LENGTH, hash_password
from argufight.utils.log_redaction import mask_value
from argufight.utils.timezone import get_now


def _now() -> datetime:
    # Stored timestamps are naive local time
    return get_now().replace(tzinfo=None)


def _minutes(ms: float) -> int:
    return int(ms // 60_000)


@dataclass(frozen=True)
class UserSnapshot:
    id: str
    email: str
    username: str
    is_admin: bool = False
    is_ai: bool = False
    ai_paused: bool = False
    ai_response_delay_ms: int | None = None
    debates_won: int = 0
    debates_lost: int = 0
    debates_tied: int = 0
    total_debates: int = 0

    @classmethod
    def from_model(cls, user: User) -> "UserSnapshot":
        return cls(
            id=user.id,
            email=user.email,
            username=user.username,
            is_admin=bool(user.is_admin),
            is_ai=bool(user.is_ai),
            ai_paused=bool(user.ai_paused),
            ai_response_delay_ms=user.ai_response_delay_ms,
            debates_won=user.debates_won or 0,
            debates_lost=user.debates_lost or 0,
            debates_tied=user.debates_tied or 0,
            total_debates=user.total_debates or 0,
        )

    @property
    def delay_ms(self) -> int:
        return self.ai_response_delay_ms or DEFAULT_AI_RESPONSE_DELAY_MS


async def _user_by_email(db: AsyncSession, email: str) -> UserSnapshot | None:
    result = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    user = result.scalar_one_or_none()
    return UserSnapshot.from_model(user) if user else None


# ============================================================================
# Settings
# ============================================================================


def resolve_flag_key(name: str) -> str:
    """Accept "tournaments" or "FEATURE_TOURNAMENTS_ENABLED"."""
    if name in registry:
        return name
    candidate = f"FEATURE_{name.upper()}_ENABLED"
    return candidate if candidate in registry else name


@dataclass(frozen=True)
class SettingState:
    key: str
    stored: str | None
    snapshot: dict[str, str] = field(default_factory=dict)


class CheckFeatureTool(MaintenanceTool):
    name = "check-feature"
    help = "Show stored value, default and effective state of a feature flag"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("flag", help="Flag key, e.g. FEATURE_TOURNAMENTS_ENABLED or tournaments")

    async def load(self, db: AsyncSession, args: argparse.Namespace) -> SettingState:
        key = resolve_flag_key(args.flag)
        return SettingState(key=key, stored=await SettingsManager(db).get(key))

    def plan(self, state: SettingState, args: argparse.Namespace) -> RepairOutcome:
        definition = registry.get_definition(state.key)
        if definition is None and state.stored is None:
            return RepairOutcome.not_found(f"{state.key} is not a registered setting and has no stored value")

        outcome = RepairOutcome()
        outcome.say(f"Setting: {state.key}")
        if definition is not None:
            outcome.say(f"  Category: {definition.category}")
            outcome.say(f"  Default: {registry.encode(state.key, definition.default)}")
        else:
            outcome.say("  Not registered (no default)")
        outcome.say(f"  Stored value: {state.stored if state.stored is not None else '(not set)'}")

        effective = registry.decode(state.key, state.stored)
        if definition is not None and definition.type == BOOL:
            outcome.say(f"  Effective: {'ENABLED' if effective else 'DISABLED'}")
            if state.stored is None:
                outcome.say("  Using default because the key has never been saved.")
        else:
            outcome.say(f"  Effective: {effective!r}")
        return outcome


class SetSettingTool(MaintenanceTool):
    name = "set-setting"
    help = "Validate and upsert one setting"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("key")
        parser.add_argument("value")

    async def load(self, db: AsyncSession, args: argparse.Namespace) -> SettingState:
        snapshot = await SettingsManager(db).get_all()
        return SettingState(key=args.key, stored=snapshot.get(args.key), snapshot=snapshot)

    def plan(self, state: SettingState, args: argparse.Namespace) -> RepairOutcome:
        if state.key not in registry and app_settings.strict_setting_keys:
            return RepairOutcome.invalid(f"Unknown setting key: {state.key}")

        try:
            value = registry.validate(state.key, args.value)
            if state.key in AI_DELAY_KEYS:
                registry.check_cross_field({**state.snapshot, state.key: value})
        except SettingValidationError as e:
            return RepairOutcome.invalid(e.message)

        outcome = RepairOutcome()
        outcome.say(f"{state.key}: {state.stored if state.stored is not None else '(not set)'} -> {value}")
        if state.stored == value:
            outcome.say("Already set; nothing to do.")
            return outcome

        outcome.changes.append(Change("admin_settings", state.key, "value", state.stored, value))
        return outcome


# ============================================================================
# Accounts
# ============================================================================


class MakeAdminTool(MaintenanceTool):
    name = "make-admin"
    help = "Grant (or revoke) admin rights for a user"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("email")
        parser.add_argument("--revoke", action="store_true", help="Remove admin rights instead")

    async def load(self, db: AsyncSession, args: argparse.Namespace) -> UserSnapshot | None:
        return await _user_by_email(db, args.email)

    def plan(self, state: UserSnapshot | None, args: argparse.Namespace) -> RepairOutcome:
        if state is None:
            return RepairOutcome.not_found(f"user with email {args.email}")

        target = not args.revoke
        outcome = RepairOutcome()
        outcome.say(f"User: {state.username} ({state.email})")
        outcome.say(f"  is_admin: {state.is_admin}")
        if state.is_admin == target:
            outcome.say(f"  Already {'an admin' if target else 'not an admin'}; nothing to do.")
            return outcome

        outcome.changes.append(Change("users", state.id, "is_admin", state.is_admin, target))
        return outcome


class ResetPasswordTool(MaintenanceTool):
    name = "reset-password"
    help = "Set a new password for a user"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("email")
        parser.add_argument("password")

    async def load(self, db: AsyncSession, args: argparse.Namespace) -> UserSnapshot | None:
        return await _user_by_email(db, args.email)

    def plan(self, state: UserSnapshot | None, args: argparse.Namespace) -> RepairOutcome:
        if len(args.password) < MIN_PASSWORD_LENGTH:
            return RepairOutcome.invalid(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if state is None:
            return RepairOutcome.not_found(f"user with email {args.email}")

        outcome = RepairOutcome()
        outcome.say(f"Resetting password for {state.username} ({state.email})")
        outcome.changes.append(
            Change("users", state.id, "password_hash", None, hash_password(args.password))
        )
        return outcome


# ============================================================================
# Debate records
# ============================================================================


@dataclass(frozen=True)
class DebateResult:
    challenger_id: str
    opponent_id: str | None
    winner_id: str | None


@dataclass(frozen=True)
class StatsState:
    users: list[UserSnapshot]
    results: list[DebateResult]
    requested_user_id: str | None = None


def tally(user_id: str, results: list[DebateResult]) -> dict[str, int]:
    """Win/loss/tie counts from finished debates. No winner means a tie."""
    won = lost = tied = 0
    for result in results:
        if result.opponent_id is None or user_id not in (result.challenger_id, result.opponent_id):
            continue
        if result.winner_id is None:
            tied += 1
        elif result.winner_id == user_id:
            won += 1
        else:
            lost += 1
    return {
        "debates_won": won,
        "debates_lost": lost,
        "debates_tied": tied,
        "total_debates": won + lost + tied,
    }


class FixUserStatsTool(MaintenanceTool):
    name = "fix-user-stats"
    help = "Recompute win/loss/tie totals from finished debates"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("user_id", nargs="?", help="Only fix this user (default: everyone)")

    async def load(self, db: AsyncSession, args: argparse.Namespace) -> StatsState:
        query = select(User).order_by(User.username)
        if args.user_id:
            query = query.where(User.id == args.user_id)
        users = [UserSnapshot.from_model(u) for u in (await db.execute(query)).scalars()]

        debates = await db.execute(
            select(Debate.challenger_id, Debate.opponent_id, Debate.winner_id).where(
                Debate.status.in_(FINISHED_STATUSES)
            )
        )
        results = [DebateResult(*row) for row in debates.all()]
        return StatsState(users=users, results=results, requested_user_id=args.user_id)

    def plan(self, state: StatsState, args: argparse.Namespace) -> RepairOutcome:
        if state.requested_user_id and not state.users:
            return RepairOutcome.not_found(f"user {state.requested_user_id}")

        outcome = RepairOutcome()
        fixed = 0
        for user in state.users:
            expected = tally(user.id, state.results)
            diffs = [
                Change("users", user.id, name, getattr(user, name), value)
                for name, value in expected.items()
                if getattr(user, name) != value
            ]
            if not diffs:
                continue
            fixed += 1
            outcome.say(
                f"{user.username}: W:{user.debates_won} L:{user.debates_lost} "
                f"T:{user.debates_tied} Total:{user.total_debates} -> "
                f"W:{expected['debates_won']} L:{expected['debates_lost']} "
                f"T:{expected['debates_tied']} Total:{expected['total_debates']}"
            )
            outcome.changes.extend(diffs)

        outcome.say(f"Checked {len(state.users)} user(s) against {len(state.results)} finished debate(s); {fixed} need fixing.")
        return outcome


@dataclass(frozen=True)
class StatementSnapshot:
    author_id: str
    round: int
    created_at: datetime


@dataclass(frozen=True)
class TimingState:
    debate_id: str
    now: datetime
    topic: str = ""
    status: str = ""
    current_round: int = 1
    total_rounds: int = 5
    challenger: UserSnapshot | None = None
    opponent: UserSnapshot | None = None
    statements: list[StatementSnapshot] = field(default_factory=list)  # newest first
    found: bool = True


class CheckAiTimingTool(MaintenanceTool):
    name = "check-ai-timing"
    help = "Show when the AI participant of a debate will respond"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("debate_id")

    async def load(self, db: AsyncSession, args: argparse.Namespace) -> TimingState:
        now = _now()
        debate = await db.get(Debate, args.debate_id)
        if debate is None:
            return TimingState(debate_id=args.debate_id, now=now, found=False)

        challenger = await db.get(User, debate.challenger_id)
        opponent = await db.get(User, debate.opponent_id) if debate.opponent_id else None
        statements = await db.execute(
            select(Statement.author_id, Statement.round, Statement.created_at)
            .where(Statement.debate_id == debate.id)
            .order_by(Statement.created_at.desc())
        )
        return TimingState(
            debate_id=debate.id,
            now=now,
            topic=debate.topic,
            status=debate.status,
            current_round=debate.current_round,
            total_rounds=debate.total_rounds,
            challenger=UserSnapshot.from_model(challenger) if challenger else None,
            opponent=UserSnapshot.from_model(opponent) if opponent else None,
            statements=[StatementSnapshot(*row) for row in statements.all()],
        )

    def plan(self, state: TimingState, args: argparse.Namespace) -> RepairOutcome:
        if not state.found or state.challenger is None:
            return RepairOutcome.not_found(f"debate {state.debate_id}")

        outcome = RepairOutcome()
        challenger, opponent = state.challenger, state.opponent
        outcome.say(f'Debate: "{state.topic[:60]}"')
        outcome.say(f"  Status: {state.status}")
        outcome.say(f"  Round: {state.current_round} / {state.total_rounds}")
        outcome.say(f"  Challenger: {challenger.username}{' (AI)' if challenger.is_ai else ''}")
        outcome.say(f"  Opponent: {opponent.username + (' (AI)' if opponent.is_ai else '') if opponent else 'None'}")

        in_round = [s for s in state.statements if s.round == state.current_round]
        challenger_count = sum(1 for s in in_round if s.author_id == challenger.id)
        opponent_count = sum(1 for s in in_round if opponent and s.author_id == opponent.id)
        challenger_turn = challenger_count == 0 or (0 < opponent_count and challenger_count <= opponent_count)
        opponent_turn = opponent is not None and (opponent_count == 0 or challenger_count > opponent_count)

        ai_user = challenger if challenger.is_ai else (opponent if opponent and opponent.is_ai else None)
        if ai_user is None:
            outcome.say("No AI user in this debate.")
            return outcome

        ai_turn = challenger_turn if ai_user.id == challenger.id else opponent_turn
        outcome.say(f"AI user: {ai_user.username}")
        if not ai_turn:
            outcome.say("  Not the AI's turn; waiting for the other participant.")
            return outcome

        delay_ms = ai_user.delay_ms
        outcome.say(f"  Response delay: {_minutes(delay_ms)} minutes")
        if ai_user.ai_paused:
            outcome.say("  AI is PAUSED; it will not respond automatically.")
            return outcome

        last = state.statements[0] if state.statements else None
        if last is None or last.author_id == ai_user.id:
            outcome.say("  Waiting for the other participant's statement before the AI can respond.")
            return outcome

        age_ms = (state.now - last.created_at).total_seconds() * 1000
        remaining_ms = delay_ms - age_ms
        outcome.say(f"  Last statement age: {_minutes(age_ms)} minutes")
        if remaining_ms > 0:
            outcome.say(f"  AI will respond in ~{_minutes(remaining_ms)} minutes")
        else:
            outcome.say(f"  OVERDUE: the AI should have responded {_minutes(-remaining_ms)} minutes ago")
        return outcome


@dataclass(frozen=True)
class ChallengeSnapshot:
    id: str
    topic: str
    challenger_id: str
    created_at: datetime


@dataclass(frozen=True)
class AcceptState:
    now: datetime
    auto_accept_enabled: bool
    ai_users: list[UserSnapshot]
    challenges: list[ChallengeSnapshot]


class CheckAiAcceptTool(MaintenanceTool):
    name = "check-ai-accept"
    help = "Compare waiting open challenges against AI users' accept delays"

    async def load(self, db: AsyncSession, args: argparse.Namespace) -> AcceptState:
        ai_users = await db.execute(
            select(User).where(User.is_ai.is_(True), User.ai_paused.is_(False)).order_by(User.username)
        )
        challenges = await db.execute(
            select(Debate.id, Debate.topic, Debate.challenger_id, Debate.created_at)
            .where(
                Debate.status == STATUS_WAITING,
                Debate.challenge_type == "OPEN",
                Debate.opponent_id.is_(None),
            )
            .order_by(Debate.created_at.desc())
        )
        return AcceptState(
            now=_now(),
            auto_accept_enabled=await SettingsManager(db).get_value("AI_BOT_AUTO_ACCEPT_ENABLED"),
            ai_users=[UserSnapshot.from_model(u) for u in ai_users.scalars()],
            challenges=[ChallengeSnapshot(*row) for row in challenges.all()],
        )

    def plan(self, state: AcceptState, args: argparse.Namespace) -> RepairOutcome:
        outcome = RepairOutcome()
        outcome.say(f"AI auto-accept: {'ENABLED' if state.auto_accept_enabled else 'DISABLED'}")

        if not state.ai_users:
            outcome.say("Not found: no active AI users")
            return outcome

        outcome.say(f"Active AI users ({len(state.ai_users)}):")
        for ai in state.ai_users:
            outcome.say(f"  - {ai.username}: delay {_minutes(ai.delay_ms)} minutes")

        if not state.challenges:
            outcome.say("No WAITING OPEN challenges found.")
            return outcome

        ai_ids = {ai.id for ai in state.ai_users}
        min_delay = min(ai.delay_ms for ai in state.ai_users)
        for challenge in state.challenges:
            age_ms = (state.now - challenge.created_at).total_seconds() * 1000
            outcome.say()
            outcome.say(f'Challenge {challenge.id}: "{challenge.topic[:60]}"')
            outcome.say(f"  Age: {_minutes(age_ms)} minutes")
            for ai in state.ai_users:
                if age_ms >= ai.delay_ms:
                    outcome.say(f"  {ai.username}: should accept now")
                else:
                    outcome.say(f"  {ai.username}: will accept in ~{_minutes(ai.delay_ms - age_ms)} minutes")

            if challenge.challenger_id in ai_ids:
                outcome.say("  Challenger is an AI user; AI users do not accept AI challenges.")
            elif age_ms >= min_delay:
                outcome.say("  WARNING: this challenge SHOULD have been accepted by now.")
                if not state.auto_accept_enabled:
                    outcome.say("  Auto-accept is disabled in admin settings.")
                else:
                    outcome.say("  The AI auto-accept job may not be running.")
        return outcome


# ============================================================================
# Belts
# ============================================================================


@dataclass(frozen=True)
class BeltSnapshot:
    id: str
    name: str
    status: str
    current_holder_id: str | None


class ResetBeltTool(MaintenanceTool):
    name = "reset-belt"
    help = "Vacate a belt (remove holder, status VACANT)"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("belt_id")

    async def load(self, db: AsyncSession, args: argparse.Namespace) -> BeltSnapshot | None:
        belt = await db.get(Belt, args.belt_id)
        if belt is None:
            return None
        return BeltSnapshot(belt.id, belt.name, belt.status, belt.current_holder_id)

    def plan(self, state: BeltSnapshot | None, args: argparse.Namespace) -> RepairOutcome:
        if state is None:
            return RepairOutcome.not_found(f"belt {args.belt_id}")

        outcome = RepairOutcome()
        outcome.say(f"Belt: {state.name}")
        outcome.say(f"  Status: {state.status}, holder: {state.current_holder_id or 'none'}")
        if state.current_holder_id is not None:
            outcome.changes.append(Change("belts", state.id, "current_holder_id", state.current_holder_id, None))
        if state.status != BELT_VACANT:
            outcome.changes.append(Change("belts", state.id, "status", state.status, BELT_VACANT))
        if not outcome.changes:
            outcome.say("  Already vacant; nothing to do.")
        return outcome


# ============================================================================
# Integrations
# ============================================================================


@dataclass(frozen=True)
class CredentialSnapshot:
    key: str
    stored: str | None
    env: str | None


class CheckIntegrationsTool(MaintenanceTool):
    name = "check-integrations"
    help = "Report which integration credentials are configured (values masked)"

    async def load(self, db: AsyncSession, args: argparse.Namespace) -> list[CredentialSnapshot]:
        keys = [key for keys in PROVIDER_CREDENTIALS.values() for key in keys]
        stored = await SettingsManager(db).get_many(keys)
        return [CredentialSnapshot(key, stored[key] or None, os.getenv(key) or None) for key in keys]

    def plan(self, state: list[CredentialSnapshot], args: argparse.Namespace) -> RepairOutcome:
        by_key = {snapshot.key: snapshot for snapshot in state}
        outcome = RepairOutcome()
        missing = 0

        for provider, keys in PROVIDER_CREDENTIALS.items():
            outcome.say(f"{provider}:")
            for key in keys:
                snapshot = by_key[key]
                effective = snapshot.stored or snapshot.env
                source = "store" if snapshot.stored else ("environment" if snapshot.env else None)
                if effective is None:
                    missing += 1
                    outcome.say(f"  {key}: NOT CONFIGURED")
                    continue
                shown = effective if key == "GOOGLE_ANALYTICS_PROPERTY_ID" else mask_value(effective)
                outcome.say(f"  {key}: {shown} (from {source})")

            if provider == "stripe":
                secret = by_key["STRIPE_SECRET_KEY"]
                publishable = by_key["STRIPE_PUBLISHABLE_KEY"]
                secret_value = secret.stored or secret.env
                publishable_value = publishable.stored or publishable.env
                if secret_value and publishable_value and key_mode(secret_value) != key_mode(publishable_value):
                    outcome.say("  WARNING: Stripe keys are from different modes (TEST vs LIVE)")

        outcome.say()
        outcome.say("All integration credentials configured." if not missing else f"{missing} credential(s) missing.")
        return outcome


TOOLS: list[MaintenanceTool] = [
    CheckFeatureTool(),
    SetSettingTool(),
    MakeAdminTool(),
    ResetPasswordTool(),
    FixUserStatsTool(),
    CheckAiTimingTool(),
    CheckAiAcceptTool(),
    ResetBeltTool(),
    CheckIntegrationsTool(),
]
