"""Typed registry of every admin-configurable setting.

Each entry names a key, its value type, the default consumers fall back to
when the key is absent from the store, the bounds the admin UI enforces, and
the category it is filed under. The store, the API, the cached flag reader
and the settings client all consult this one table.
"""

import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from argufight.errors import SettingValidationError

logger = logging.getLogger(__name__)

# Value type tags (also persisted in AdminSetting.value_type)
BOOL = "bool"
INT = "int"
FLOAT = "float"
STR = "str"
ENUM = "enum"
INT_LIST = "int_list"
JSON = "json"
SECRET = "secret"

TRUE_STRINGS = ("true", "1", "yes", "on")
FALSE_STRINGS = ("false", "0", "no", "off")

AI_PERSONALITIES = ("BALANCED", "AGGRESSIVE", "DIPLOMATIC", "ANALYTICAL", "CREATIVE", "SMART")


@dataclass(frozen=True)
class SettingDefinition:
    """Schema for one setting key."""

    key: str
    type: str
    default: Any
    category: str = "general"
    description: str = ""
    label: str = ""
    min_value: float | None = None
    max_value: float | None = None
    choices: tuple[str, ...] = ()
    sensitive: bool = False
    validator: Callable[[Any], None] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Public shape served to the admin UI (defaults pre-encoded as strings)."""
        return {
            "key": self.key,
            "type": self.type,
            "default": encode_value(self, self.default),
            "category": self.category,
            "label": self.label or self.key,
            "description": self.description,
            "min": self.min_value,
            "max": self.max_value,
            "choices": list(self.choices),
            "sensitive": self.sensitive,
        }


# ============================================================================
# Codec
# ============================================================================


def encode_value(definition: SettingDefinition | None, value: Any) -> str:
    """
    Serialize a Python value to the store's string form.

    Booleans become "true"/"false", numbers decimal strings, integer lists
    comma-separated. Strings pass through untouched.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(item) for item in value)
    if definition is not None and definition.type == JSON and not isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, float) and value.is_integer() and (
        definition is None or definition.type == INT
    ):
        return str(int(value))
    return str(value)


def parse_value(definition: SettingDefinition, raw: str) -> Any:
    """
    Parse and validate a stored string against its definition.

    Raises:
        SettingValidationError: if the string does not fit the definition
    """
    key = definition.key
    if not isinstance(raw, str):
        raise SettingValidationError(key, "value must be a string")

    text = raw.strip()
    kind = definition.type

    if kind == BOOL:
        lowered = text.lower()
        if lowered in TRUE_STRINGS:
            value: Any = True
        elif lowered in FALSE_STRINGS:
            value = False
        else:
            raise SettingValidationError(key, "must be a boolean value (true/false)")

    elif kind == INT:
        try:
            value = int(text)
        except ValueError:
            raise SettingValidationError(key, f"must be an integer, got {raw!r}")
        _check_bounds(definition, value)

    elif kind == FLOAT:
        try:
            value = float(text)
        except ValueError:
            raise SettingValidationError(key, f"must be a number, got {raw!r}")
        _check_bounds(definition, value)

    elif kind == ENUM:
        value = text.upper()
        if value not in definition.choices:
            raise SettingValidationError(
                key, f"must be one of: {', '.join(definition.choices)}"
            )

    elif kind == INT_LIST:
        parts = [part.strip() for part in text.split(",")] if text else []
        if not parts:
            raise SettingValidationError(key, "must be a comma-separated list of integers")
        try:
            value = [int(part) for part in parts]
        except ValueError:
            raise SettingValidationError(key, "must be a comma-separated list of integers")
        for item in value:
            _check_bounds(definition, item)

    elif kind == JSON:
        if not text:
            value = None
        else:
            try:
                value = json.loads(text)
            except ValueError as exc:
                raise SettingValidationError(key, f"must be valid JSON ({exc})")

    else:  # STR, SECRET
        value = raw

    if definition.validator is not None:
        definition.validator(value)
    return value


def _check_bounds(definition: SettingDefinition, value: float) -> None:
    if definition.min_value is not None and value < definition.min_value:
        raise SettingValidationError(
            definition.key, f"must be at least {_fmt(definition.min_value)}"
        )
    if definition.max_value is not None and value > definition.max_value:
        raise SettingValidationError(
            definition.key, f"must be at most {_fmt(definition.max_value)}"
        )


def _fmt(number: float) -> str:
    return str(int(number)) if float(number).is_integer() else str(number)


# ============================================================================
# Field validators
# ============================================================================


def _prize_split_sums_to_100(value: list[int]) -> None:
    total = sum(value)
    if total != 100:
        raise SettingValidationError(
            "TOURNAMENT_DEFAULT_PRIZE_SPLIT", f"percentages must sum to 100 (got {total})"
        )


def _digits_only(key: str) -> Callable[[Any], None]:
    def check(value: Any) -> None:
        if value and not str(value).strip().isdigit():
            raise SettingValidationError(key, "must contain digits only")

    return check


# ============================================================================
# Registry
# ============================================================================


class SettingsRegistry:
    """Lookup table of setting definitions keyed by setting name."""

    def __init__(self, definitions: Iterable[SettingDefinition] = ()):
        self._definitions: dict[str, SettingDefinition] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: SettingDefinition) -> None:
        if definition.key in self._definitions:
            raise ValueError(f"Setting {definition.key} registered twice")
        self._definitions[definition.key] = definition

    def __contains__(self, key: str) -> bool:
        return key in self._definitions

    def __iter__(self):
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)

    def get_definition(self, key: str) -> SettingDefinition | None:
        return self._definitions.get(key)

    def keys(self) -> list[str]:
        return list(self._definitions)

    def defaults(self) -> dict[str, str]:
        """Every registered key mapped to its encoded default."""
        return {d.key: encode_value(d, d.default) for d in self._definitions.values()}

    def definitions_by_category(self) -> dict[str, list[SettingDefinition]]:
        grouped: dict[str, list[SettingDefinition]] = {}
        for definition in self._definitions.values():
            grouped.setdefault(definition.category, []).append(definition)
        return grouped

    def feature_flags(self) -> list[SettingDefinition]:
        return [d for d in self._definitions.values() if d.category == "features"]

    def validate(self, key: str, raw: str) -> str:
        """
        Validate a raw string and return its normalized stored form.

        Unregistered keys pass through unchanged.
        """
        definition = self.get_definition(key)
        if definition is None:
            return raw
        if definition.type in (STR, SECRET, JSON):
            parse_value(definition, raw)
            return raw
        return encode_value(definition, parse_value(definition, raw))

    def decode(self, key: str, raw: str | None) -> Any:
        """
        Typed value for a stored string, or the default when absent.

        Stored data that no longer parses (written before validation existed,
        or by a repair script) also falls back to the default.
        """
        definition = self.get_definition(key)
        if definition is None:
            return raw
        if raw is None:
            return definition.default
        try:
            return parse_value(definition, raw)
        except SettingValidationError as e:
            logger.warning(f"Stored value for {key} is invalid ({e.message}); using default")
            return definition.default

    def encode(self, key: str, value: Any) -> str:
        return encode_value(self.get_definition(key), value)

    def value_type(self, key: str) -> str:
        definition = self.get_definition(key)
        return definition.type if definition else STR

    def check_cross_field(self, merged: dict[str, str]) -> None:
        """
        Rules spanning more than one key, evaluated against the merged state.

        Raises:
            SettingValidationError: naming the key that should be corrected
        """
        low = self.decode("AI_BOT_RESPONSE_MIN_DELAY", merged.get("AI_BOT_RESPONSE_MIN_DELAY"))
        high = self.decode("AI_BOT_RESPONSE_MAX_DELAY", merged.get("AI_BOT_RESPONSE_MAX_DELAY"))
        if low > high:
            raise SettingValidationError(
                "AI_BOT_RESPONSE_MIN_DELAY",
                f"minimum delay ({low}) cannot exceed maximum delay ({high})",
            )


def _flag(key: str, label: str, description: str, default: bool = True) -> SettingDefinition:
    return SettingDefinition(
        key=key, type=BOOL, default=default, category="features", label=label,
        description=description,
    )


FEATURE_GROUPS: dict[str, list[SettingDefinition]] = {
    "Social Features": [
        _flag("FEATURE_LIKES_ENABLED", "Likes", "Allow users to like debates"),
        _flag("FEATURE_SAVES_ENABLED", "Saves", "Allow users to bookmark/save debates"),
        _flag("FEATURE_SHARES_ENABLED", "Shares", "Allow users to share debates"),
        _flag("FEATURE_COMMENTS_ENABLED", "Comments", "Allow users to comment on debates"),
        _flag("FEATURE_FOLLOWS_ENABLED", "Follows", "Allow users to follow other users"),
    ],
    "Game Mechanics": [
        _flag("FEATURE_TOURNAMENTS_ENABLED", "Tournaments",
              "Tournament bracket system (bracket, championship, king of the hill)"),
        _flag("FEATURE_BELTS_ENABLED", "Belt Championships", "Belt challenge and defense system"),
        _flag("FEATURE_COINS_ENABLED", "Coin Economy", "Virtual currency for in-app transactions"),
        _flag("FEATURE_DAILY_LOGIN_REWARD_ENABLED", "Daily Login Rewards",
              "Reward coins for consecutive daily logins"),
        _flag("FEATURE_DAILY_CHALLENGES_ENABLED", "Daily Challenges",
              "Daily debate challenges for users"),
        _flag("FEATURE_STREAKS_ENABLED", "Debate Streaks",
              "Track consecutive debate participation streaks"),
        _flag("FEATURE_PREDICTIONS_ENABLED", "Predictions",
              "Allow users to predict debate outcomes"),
    ],
    "Communication": [
        _flag("FEATURE_MESSAGING_ENABLED", "Direct Messaging",
              "Allow users to send private messages"),
    ],
    "Content & Marketing": [
        _flag("FEATURE_BLOG_ENABLED", "Blog", "Blog posts with SEO metadata"),
        _flag("FEATURE_SEO_TOOLS_ENABLED", "SEO Tools",
              "SEO audit engine and Google Search Console integration"),
        _flag("FEATURE_AI_MARKETING_ENABLED", "AI Marketing",
              "AI-powered blog generation, social posts, and marketing strategies", False),
    ],
    "Business Modules": [
        _flag("FEATURE_SUBSCRIPTIONS_ENABLED", "Subscriptions",
              "FREE/PRO tier system with feature limits and Stripe billing", False),
        _flag("FEATURE_COIN_PURCHASES_ENABLED", "Coin Purchases",
              "Allow buying coins with real money via Stripe", False),
        _flag("FEATURE_ADVERTISING_ENABLED", "Advertising System",
              "Advertiser dashboard, campaigns, and ad placements", False),
        _flag("FEATURE_CREATOR_MARKETPLACE_ENABLED", "Creator Marketplace",
              "Creator dashboard, earnings, offers, and payouts", False),
    ],
}


def _system_settings() -> list[SettingDefinition]:
    S = SettingDefinition
    return [
        # Verdicts
        S("VERDICT_TIE_THRESHOLD", INT, 5, "verdicts", "Score difference at or below which a debate is a tie",
          "Tie Threshold", 0, 20),
        S("VERDICT_DEADLINE_PENALTY_ENABLED", BOOL, True, "verdicts",
          "Penalize participants who miss round deadlines", "Deadline Penalty"),
        S("VERDICT_AUTO_GENERATE", BOOL, True, "verdicts",
          "Generate verdicts automatically when a debate ends", "Auto-generate Verdicts"),
        # Advertising
        S("ADS_PLATFORM_FEE_BRONZE", INT, 25, "advertising", "Platform fee for Bronze creators (%)",
          "Bronze Fee", 0, 100),
        S("ADS_PLATFORM_FEE_SILVER", INT, 20, "advertising", "Platform fee for Silver creators (%)",
          "Silver Fee", 0, 100),
        S("ADS_PLATFORM_FEE_GOLD", INT, 15, "advertising", "Platform fee for Gold creators (%)",
          "Gold Fee", 0, 100),
        S("ADS_PLATFORM_FEE_PLATINUM", INT, 10, "advertising",
          "Platform fee for Platinum creators (%)", "Platinum Fee", 0, 100),
        S("ADS_ESCROW_HOLD_DAYS", INT, 7, "advertising",
          "Days creator earnings are held before payout", "Escrow Hold", 0, 30),
        S("ADS_APPROVAL_REQUIRED", BOOL, True, "advertising",
          "Advertisements require admin approval", "Require Approval"),
        S("ADS_PLATFORM_ENABLED", BOOL, False, "advertising",
          "Show platform-sold ads", "Platform Ads"),
        S("ADS_CREATOR_MARKETPLACE_ENABLED", BOOL, False, "advertising",
          "Enable Creator Marketplace", "Creator Marketplace"),
        S("CREATOR_MIN_ELO", INT, 1500, "advertising",
          "Minimum ELO for creator eligibility", "Creator Min ELO", 0, 5000),
        S("CREATOR_MIN_DEBATES", INT, 10, "advertising",
          "Minimum debates for creator eligibility", "Creator Min Debates", 0, 10000),
        S("CREATOR_MIN_ACCOUNT_AGE_MONTHS", INT, 3, "advertising",
          "Minimum account age (months) for creator eligibility", "Creator Min Age", 0, 120),
        # Belts
        S("BELT_FREE_CHALLENGES_PER_WEEK", INT, 3, "belts",
          "Free belt challenges each user gets per week", "Free Challenges", 0, 20),
        S("BELT_CHALLENGE_GRACE_PERIOD_DAYS", INT, 7, "belts",
          "Days a holder has to accept a challenge", "Grace Period", 1, 30),
        S("BELT_AUTO_EXPIRE_ENABLED", BOOL, True, "belts",
          "Vacate belts whose holders stop defending", "Auto-expire Belts"),
        # Tournaments
        S("TOURNAMENT_AUTO_START_ENABLED", BOOL, True, "tournaments",
          "Start tournaments automatically when full", "Auto Start"),
        S("TOURNAMENT_AUTO_PROGRESSION_ENABLED", BOOL, True, "tournaments",
          "Advance rounds automatically when matches finish", "Auto Progression"),
        S("TOURNAMENT_MIN_PARTICIPANTS", INT, 2, "tournaments",
          "Minimum participants to start a tournament", "Min Participants", 2, 128),
        S("TOURNAMENT_DEFAULT_PRIZE_SPLIT", INT_LIST, [60, 30, 10], "tournaments",
          "Prize split percentages for 1st, 2nd, 3rd place", "Prize Split", 0, 100,
          validator=_prize_split_sums_to_100),
        # Notifications
        S("NOTIFICATION_EMAIL_ENABLED", BOOL, True, "notifications", "Send email notifications",
          "Email Notifications"),
        S("NOTIFICATION_PUSH_ENABLED", BOOL, True, "notifications", "Send push notifications",
          "Push Notifications"),
        S("NOTIFICATION_TURN_REMINDERS_ENABLED", BOOL, True, "notifications",
          "Remind users when it is their turn", "Turn Reminders"),
        S("NOTIFICATION_VERDICT_ALERTS_ENABLED", BOOL, True, "notifications",
          "Alert users when a verdict is ready", "Verdict Alerts"),
        # AI bots
        S("AI_BOT_AUTO_ACCEPT_ENABLED", BOOL, True, "ai_bots",
          "AI personalities accept open challenges automatically", "Auto-accept"),
        S("AI_BOT_RESPONSE_MIN_DELAY", INT, 5, "ai_bots",
          "Minimum minutes before an AI responds", "Min Delay", 1, 60),
        S("AI_BOT_RESPONSE_MAX_DELAY", INT, 15, "ai_bots",
          "Maximum minutes before an AI responds", "Max Delay", 1, 60),
        S("AI_BOT_DEFAULT_PERSONALITY", ENUM, "BALANCED", "ai_bots",
          "Personality assigned to new AI users", "Default Personality",
          choices=AI_PERSONALITIES),
        # Rewards
        S("DAILY_LOGIN_BASE_REWARD", INT, 10, "rewards", "Coins awarded per daily login",
          "Base Reward", 0, 10000),
        S("DAILY_LOGIN_STREAK_MULTIPLIER", FLOAT, 0.1, "rewards",
          "Reward increase per month of streak", "Streak Multiplier", 0, 10),
        S("DAILY_LOGIN_MONTHLY_CAP", FLOAT, 3.0, "rewards", "Maximum reward multiplier",
          "Multiplier Cap", 1, 100),
        # Users
        S("user_limit", INT, 0, "users",
          "Maximum number of users allowed on the platform. Set to 0 for unlimited.",
          "User Limit", 0, None),
    ]


def _credentials() -> list[SettingDefinition]:
    def secret(key: str, category: str, description: str) -> SettingDefinition:
        return SettingDefinition(key, SECRET, "", category, description, sensitive=True)

    return [
        secret("DEEPSEEK_API_KEY", "ai", "DeepSeek API key used by the AI judges"),
        secret("RESEND_API_KEY", "email", "Resend API key for transactional email"),
        secret("STRIPE_PUBLISHABLE_KEY", "payments", "Stripe publishable key"),
        secret("STRIPE_SECRET_KEY", "payments", "Stripe secret key"),
        secret("STRIPE_WEBHOOK_SECRET", "payments", "Stripe webhook signing secret"),
        SettingDefinition("GOOGLE_ANALYTICS_API_KEY", SECRET, "", "analytics",
                          "Google Analytics service account JSON", sensitive=True),
        SettingDefinition("GOOGLE_ANALYTICS_PROPERTY_ID", STR, "", "analytics",
                          "GA4 property ID", validator=_digits_only("GOOGLE_ANALYTICS_PROPERTY_ID")),
        SettingDefinition("GOOGLE_CLIENT_ID", STR, "", "oauth", "Google OAuth client ID"),
        secret("GOOGLE_CLIENT_SECRET", "oauth", "Google OAuth client secret"),
        SettingDefinition("VAPID_PUBLIC_KEY", STR, "", "notifications",
                          "Web Push VAPID public key"),
        secret("VAPID_PRIVATE_KEY", "notifications", "Web Push VAPID private key"),
        SettingDefinition("FIREBASE_PROJECT_ID", STR, "", "notifications", "Firebase project ID"),
        secret("FIREBASE_SERVER_KEY", "notifications", "Firebase Cloud Messaging server key"),
        SettingDefinition("FIREBASE_SERVICE_ACCOUNT", JSON, "", "notifications",
                          "Firebase service account JSON", sensitive=True),
    ]


def build_registry() -> SettingsRegistry:
    """Assemble the platform's registry."""
    registry = SettingsRegistry()
    for flags in FEATURE_GROUPS.values():
        for definition in flags:
            registry.register(definition)
    for definition in _system_settings():
        registry.register(definition)
    for definition in _credentials():
        registry.register(definition)
    return registry


registry = build_registry()
