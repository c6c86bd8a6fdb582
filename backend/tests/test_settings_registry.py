"""Tests for the typed settings registry.

Covers:
- String codec for each value type
- Bounds, choices and field validators
- Default fallback when a key is absent or stored data is corrupt
- Cross-field rules
"""

import pytest

from argufight.errors import SettingValidationError
from argufight.services.settings_registry import (
    BOOL,
    FEATURE_GROUPS,
    INT,
    SettingDefinition,
    SettingsRegistry,
    encode_value,
    registry,
)


class TestRegistryContents:
    """The shipped registry describes every admin key."""

    def test_defaults_match_admin_ui(self):
        """Defaults the admin tabs show before anything is saved."""
        defaults = registry.defaults()

        assert defaults["VERDICT_TIE_THRESHOLD"] == "5"
        assert defaults["TOURNAMENT_MIN_PARTICIPANTS"] == "2"
        assert defaults["TOURNAMENT_DEFAULT_PRIZE_SPLIT"] == "60,30,10"
        assert defaults["ADS_PLATFORM_FEE_BRONZE"] == "25"
        assert defaults["ADS_PLATFORM_FEE_PLATINUM"] == "10"
        assert defaults["AI_BOT_DEFAULT_PERSONALITY"] == "BALANCED"
        assert defaults["FEATURE_TOURNAMENTS_ENABLED"] == "true"
        assert defaults["FEATURE_SUBSCRIPTIONS_ENABLED"] == "false"

    def test_feature_groups_only_hold_feature_flags(self):
        """Every grouped flag is a boolean in the features category."""
        grouped = [definition for flags in FEATURE_GROUPS.values() for definition in flags]

        assert grouped
        assert set(d.key for d in grouped) == set(d.key for d in registry.feature_flags())
        for definition in grouped:
            assert definition.type == BOOL
            assert definition.key.startswith("FEATURE_")
            assert definition.key.endswith("_ENABLED")

    def test_credentials_are_sensitive(self):
        """API keys are flagged so they are masked in reads and logs."""
        for key in ("DEEPSEEK_API_KEY", "RESEND_API_KEY", "STRIPE_SECRET_KEY", "GOOGLE_ANALYTICS_API_KEY"):
            assert registry.get_definition(key).sensitive is True
        assert registry.get_definition("GOOGLE_ANALYTICS_PROPERTY_ID").sensitive is False

    def test_definitions_by_category(self):
        grouped = registry.definitions_by_category()

        assert "VERDICT_TIE_THRESHOLD" in [d.key for d in grouped["verdicts"]]
        assert "AI_BOT_RESPONSE_MIN_DELAY" in [d.key for d in grouped["ai_bots"]]
        assert sum(len(definitions) for definitions in grouped.values()) == len(registry)

    def test_duplicate_registration_rejected(self):
        """A key can only be registered once."""
        local = SettingsRegistry([SettingDefinition("X", INT, 1)])
        with pytest.raises(ValueError):
            local.register(SettingDefinition("X", INT, 2))

    def test_to_dict_encodes_default(self):
        """Registry entries are served with string defaults."""
        data = registry.get_definition("TOURNAMENT_DEFAULT_PRIZE_SPLIT").to_dict()

        assert data["default"] == "60,30,10"
        assert data["type"] == "int_list"
        assert data["min"] == 0
        assert data["max"] == 100


class TestValidate:
    """validate() returns the normalized stored string or raises."""

    def test_integer_normalized(self):
        assert registry.validate("VERDICT_TIE_THRESHOLD", " 7 ") == "7"

    def test_integer_rejects_text(self):
        with pytest.raises(SettingValidationError) as exc_info:
            registry.validate("VERDICT_TIE_THRESHOLD", "abc")

        assert "VERDICT_TIE_THRESHOLD" in exc_info.value.message
        assert "must be an integer" in exc_info.value.message

    def test_integer_bounds(self):
        with pytest.raises(SettingValidationError, match="at most 20"):
            registry.validate("VERDICT_TIE_THRESHOLD", "21")
        with pytest.raises(SettingValidationError, match="at least 2"):
            registry.validate("TOURNAMENT_MIN_PARTICIPANTS", "1")

    def test_boolean_spellings(self):
        assert registry.validate("FEATURE_BLOG_ENABLED", "TRUE") == "true"
        assert registry.validate("FEATURE_BLOG_ENABLED", "0") == "false"
        with pytest.raises(SettingValidationError, match="boolean"):
            registry.validate("FEATURE_BLOG_ENABLED", "maybe")

    def test_float_bounds(self):
        assert registry.validate("DAILY_LOGIN_STREAK_MULTIPLIER", "0.25") == "0.25"
        with pytest.raises(SettingValidationError):
            registry.validate("DAILY_LOGIN_STREAK_MULTIPLIER", "-1")

    def test_enum_uppercased(self):
        assert registry.validate("AI_BOT_DEFAULT_PERSONALITY", "aggressive") == "AGGRESSIVE"
        with pytest.raises(SettingValidationError, match="must be one of"):
            registry.validate("AI_BOT_DEFAULT_PERSONALITY", "GRUMPY")

    def test_prize_split_must_sum_to_100(self):
        assert registry.validate("TOURNAMENT_DEFAULT_PRIZE_SPLIT", "50, 30, 20") == "50,30,20"
        with pytest.raises(SettingValidationError, match="sum to 100"):
            registry.validate("TOURNAMENT_DEFAULT_PRIZE_SPLIT", "60,30,20")
        with pytest.raises(SettingValidationError):
            registry.validate("TOURNAMENT_DEFAULT_PRIZE_SPLIT", "60,forty")

    def test_secret_stored_verbatim(self):
        """Credentials are opaque; even a pasted script is kept as-is."""
        raw = "<script>gtag('config', 'G-XYZ')</script>"
        assert registry.validate("GOOGLE_ANALYTICS_API_KEY", raw) == raw

    def test_property_id_digits_only(self):
        assert registry.validate("GOOGLE_ANALYTICS_PROPERTY_ID", "123456789") == "123456789"
        with pytest.raises(SettingValidationError, match="digits"):
            registry.validate("GOOGLE_ANALYTICS_PROPERTY_ID", "G-ABC123")

    def test_unregistered_key_passes_through(self):
        assert registry.validate("LEGACY_SETTING", "anything") == "anything"


class TestDecode:
    """decode() gives typed values with defaults applied."""

    def test_absent_key_uses_default(self):
        assert registry.decode("VERDICT_TIE_THRESHOLD", None) == 5
        assert registry.decode("TOURNAMENT_DEFAULT_PRIZE_SPLIT", None) == [60, 30, 10]

    def test_stored_value_parsed(self):
        assert registry.decode("VERDICT_TIE_THRESHOLD", "8") == 8
        assert registry.decode("FEATURE_BELTS_ENABLED", "false") is False

    def test_corrupt_value_falls_back_to_default(self):
        assert registry.decode("VERDICT_TIE_THRESHOLD", "lots") == 5

    def test_unregistered_key_returns_raw(self):
        assert registry.decode("LEGACY_SETTING", "x") == "x"
        assert registry.decode("LEGACY_SETTING", None) is None


class TestEncode:
    """encode_value() produces the store's string form."""

    def test_booleans(self):
        assert encode_value(None, True) == "true"
        assert encode_value(None, False) == "false"

    def test_integral_float_for_int_key(self):
        assert registry.encode("VERDICT_TIE_THRESHOLD", 7.0) == "7"

    def test_int_list(self):
        assert registry.encode("TOURNAMENT_DEFAULT_PRIZE_SPLIT", [70, 20, 10]) == "70,20,10"

    def test_json(self):
        assert registry.encode("FIREBASE_SERVICE_ACCOUNT", {"type": "service_account"}) == (
            '{"type": "service_account"}'
        )


class TestCrossField:
    """Rules spanning more than one key."""

    def test_min_delay_above_max_rejected(self):
        with pytest.raises(SettingValidationError, match="AI_BOT_RESPONSE_MIN_DELAY"):
            registry.check_cross_field(
                {"AI_BOT_RESPONSE_MIN_DELAY": "30", "AI_BOT_RESPONSE_MAX_DELAY": "10"}
            )

    def test_defaults_fill_missing_side(self):
        # Default max is 15
        with pytest.raises(SettingValidationError):
            registry.check_cross_field({"AI_BOT_RESPONSE_MIN_DELAY": "20"})
        registry.check_cross_field({"AI_BOT_RESPONSE_MIN_DELAY": "15"})
