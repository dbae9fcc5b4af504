"""Tests for configuration loading and validation."""

from __future__ import annotations

from decimal import Decimal

import pytest

from swaploop.config import (
    ConfigurationError,
    NotificationService,
    load_config,
    load_notification_config,
)

FAKE_KEY_HEX = "0x" + bytes(range(32)).hex()
BASE_ENV = {"PRIVATE_KEY": FAKE_KEY_HEX, "TAPP_POOL_ID": "0xpool"}


@pytest.fixture
def no_yaml(tmp_path):
    return tmp_path / "missing.yaml"


def _write_yaml(tmp_path, text: str):
    path = tmp_path / "swap.yaml"
    path.write_text(text)
    return path


class TestRequired:

    def test_missing_private_key(self, no_yaml):
        with pytest.raises(ConfigurationError, match="PRIVATE_KEY"):
            load_config(env={"TAPP_POOL_ID": "0xpool"}, path=no_yaml)

    def test_missing_both(self, no_yaml):
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(env={}, path=no_yaml)
        assert "PRIVATE_KEY" in str(exc_info.value)
        assert "TAPP_POOL_ID" in str(exc_info.value)

    def test_blank_values_count_as_missing(self, no_yaml):
        with pytest.raises(ConfigurationError, match="TAPP_POOL_ID"):
            load_config(env={"PRIVATE_KEY": FAKE_KEY_HEX, "TAPP_POOL_ID": "   "}, path=no_yaml)


class TestDefaults:

    def test_defaults(self, no_yaml):
        config = load_config(env=BASE_ENV, path=no_yaml)

        assert config.batch_size == 50
        assert config.min_threshold == Decimal("2")
        assert config.reserve == Decimal("5")
        assert config.slippage == Decimal("0.005")
        assert config.loop_interval_seconds == 5.0
        assert config.decimals == 8
        assert (config.token_index_a, config.token_index_b) == (0, 1)

    def test_unit_conversion(self, no_yaml):
        config = load_config(env=BASE_ENV, path=no_yaml)

        assert config.to_units(Decimal("2")) == 200_000_000
        assert config.reserve_units == 500_000_000
        assert config.to_decimal(150_000_000) == Decimal("1.5")

    def test_sub_unit_reserve_rounds_up(self, no_yaml):
        config = load_config(env=BASE_ENV, path=no_yaml, overrides={"reserve": Decimal("5.000000001")})

        assert config.to_units(Decimal("5.000000001")) == 500_000_000
        assert config.reserve_units == 500_000_001

    def test_private_key_not_in_repr(self, no_yaml):
        config = load_config(env=BASE_ENV, path=no_yaml)
        assert FAKE_KEY_HEX not in repr(config)


class TestLayering:

    def test_yaml_then_env_then_overrides(self, tmp_path):
        path = _write_yaml(tmp_path, "batch_size: 10\nslippage: 0.01\nreserve: 3\n")

        from_yaml = load_config(env=BASE_ENV, path=path)
        assert from_yaml.batch_size == 10
        assert from_yaml.reserve == Decimal("3")

        from_env = load_config(env={**BASE_ENV, "SWAP_BATCH_SIZE": "20"}, path=path)
        assert from_env.batch_size == 20

        overridden = load_config(
            env={**BASE_ENV, "SWAP_BATCH_SIZE": "20"},
            path=path,
            overrides={"batch_size": 3},
        )
        assert overridden.batch_size == 3

    def test_none_override_ignored(self, no_yaml):
        config = load_config(env=BASE_ENV, path=no_yaml, overrides={"batch_size": None})
        assert config.batch_size == 50

    def test_token_indices_from_env(self, no_yaml):
        env = {**BASE_ENV, "TOKEN_IN_INDEX_APT": "1", "TOKEN_IN_INDEX_KAPT": "0"}
        config = load_config(env=env, path=no_yaml)
        assert (config.token_index_a, config.token_index_b) == (1, 0)


class TestValidation:

    @pytest.mark.parametrize("yaml_text", [
        "slippage: 1.5\n",
        "slippage: -0.1\n",
        "batch_size: -1\n",
        "loop_interval_seconds: -5\n",
        "token_index_b: 0\n",
        "unknown_setting: true\n",
    ])
    def test_invalid_values(self, tmp_path, yaml_text):
        path = _write_yaml(tmp_path, yaml_text)
        with pytest.raises(ConfigurationError, match="Invalid configuration") as exc_info:
            load_config(env=BASE_ENV, path=path)
        assert FAKE_KEY_HEX not in str(exc_info.value)

    def test_non_numeric_env(self, no_yaml):
        with pytest.raises(ConfigurationError, match="batch_size"):
            load_config(env={**BASE_ENV, "SWAP_BATCH_SIZE": "lots"}, path=no_yaml)

    def test_yaml_must_be_mapping(self, tmp_path):
        path = _write_yaml(tmp_path, "- just\n- a list\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(env=BASE_ENV, path=path)


class TestNotificationConfig:

    def test_loads_channel_settings(self):
        config = load_notification_config({
            "NOTIFICATION_SERVICE": "2",
            "TELEGRAM_BOT_TOKEN": "123:ABC",
            "TELEGRAM_CHAT_ID": "-100",
        })
        assert config.service == NotificationService.TELEGRAM
        assert config.telegram_chat_id == "-100"

    def test_defaults_to_disabled(self):
        assert load_notification_config({}).service == NotificationService.DISABLED

    def test_garbage_service_disables(self):
        assert load_notification_config({"NOTIFICATION_SERVICE": "discord"}).service == 0
