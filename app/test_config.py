import json

import pytest

from app.config import (
    Config,
    ConfigError,
    load_config,
    parse_argv,
    parse_environ,
)


def _write(directory, name, data):
    (directory / name).write_text(json.dumps(data), encoding="utf-8")


class TestParseArgv:
    def test_separate_value(self):
        assert parse_argv(["--server:port", "9000"]) == {"server": {"port": 9000}}

    def test_inline_value(self):
        assert parse_argv(["--log:level=debug"]) == {"log": {"level": "debug"}}

    def test_bare_flag(self):
        assert parse_argv(["--verbose"]) == {"verbose": True}

    def test_ignores_positionals(self):
        assert parse_argv(["serve", "--APP_ENV", "local"]) == {"APP_ENV": "local"}


class TestParseEnviron:
    def test_nesting_separator(self):
        store = parse_environ({"server__port": "9100", "APP_ENV": "production"})

        assert store == {"server": {"port": "9100"}, "APP_ENV": "production"}


class TestConfig:
    def test_first_store_wins(self):
        config = Config([{"a": {"b": 1}}, {"a": {"b": 2, "c": 3}}])

        assert config.get("a:b") == 1
        assert config.get("a:c") == 3
        assert config.get("a:missing", "fallback") == "fallback"

    @pytest.mark.parametrize(
        "env,production,local,development",
        [
            ("production", True, False, False),
            ("local", False, True, False),
            ("development", False, False, True),
            (None, False, False, False),
        ],
    )
    def test_environment_helpers(self, env, production, local, development):
        config = Config([{"APP_ENV": env}] if env else [{}])

        assert config.environment() == env
        assert config.is_production() is production
        assert config.is_local() is local
        assert config.is_development() is development


class TestLoadConfig:
    def test_cascade_order(self, tmp_path):
        _write(tmp_path, "config.generic.json", {"server": {"port": 1, "host": "generic"}, "a": "generic"})
        _write(tmp_path, "config.staging.json", {"server": {"port": 2}, "b": "safe-env"})
        _write(tmp_path, ".config.generic.json", {"c": "sensitive-generic", "b": "sensitive-generic"})
        _write(tmp_path, ".config.staging.json", {"d": "sensitive-env", "c": "sensitive-env"})
        _write(tmp_path, ".config.json", {"e": "override", "d": "override"})

        config = load_config(
            argv=["--e", "argv"],
            environ={"APP_ENV": "staging", "server__port": "3"},
            config_dir=str(tmp_path),
        )

        assert config.environment() == "staging"
        assert config.get("server:port") == "3"
        assert config.get("server:host") == "generic"
        assert config.get("a") == "generic"
        assert config.get("b") == "sensitive-generic"
        assert config.get("c") == "sensitive-env"
        assert config.get("d") == "override"
        assert config.get("e") == "argv"

    def test_argv_selects_environment_files(self, tmp_path):
        _write(tmp_path, "config.local.json", {"log": {"level": "debug"}})
        _write(tmp_path, "config.production.json", {"log": {"level": "warning"}})

        config = load_config(
            argv=["--APP_ENV=local"],
            environ={"APP_ENV": "production"},
            config_dir=str(tmp_path),
        )

        assert config.is_local()
        assert config.get("log:level") == "debug"

    def test_missing_files_are_skipped(self, tmp_path):
        config = load_config(argv=[], environ={}, config_dir=str(tmp_path))

        assert config.get("server:port") is None
        assert config.environment() is None

    def test_invalid_json_raises(self, tmp_path):
        (tmp_path / "config.generic.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_config(argv=[], environ={}, config_dir=str(tmp_path))

    def test_non_object_file_raises(self, tmp_path):
        _write(tmp_path, "config.generic.json", [1, 2])

        with pytest.raises(ConfigError):
            load_config(argv=[], environ={}, config_dir=str(tmp_path))

    def test_shipped_defaults(self):
        config = load_config(argv=[], environ={})

        assert config.get("server:port") == 8080
        assert config.get("shutdown:timeout") == 5
