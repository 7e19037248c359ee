from pathlib import Path

from spec_reconciler.config import DEFAULT_STORE, load_settings


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings({})
        assert settings.store == Path(DEFAULT_STORE)
        assert settings.log_level == "WARNING"
        assert settings.smart_defaults is True

    def test_environment_overrides(self):
        settings = load_settings(
            {
                "RECONCILER_STORE": "/tmp/specs.json",
                "RECONCILER_LOG_LEVEL": "debug",
                "RECONCILER_SMART_DEFAULTS": "off",
            }
        )
        assert settings.store == Path("/tmp/specs.json")
        assert settings.log_level == "DEBUG"
        assert settings.smart_defaults is False

    def test_empty_values_fall_back(self):
        settings = load_settings({"RECONCILER_STORE": "", "RECONCILER_LOG_LEVEL": ""})
        assert settings.store == Path(DEFAULT_STORE)
        assert settings.log_level == "WARNING"
