# tests/test_config.py
"""
Tests for Config loading and validation.

Run:
    pytest tests/test_config.py -v
"""
import pytest

from config import Config, ConfigurationError


@pytest.fixture
def env(monkeypatch):
    """Isolated environment without a .env file."""
    monkeypatch.setattr("config.load_dotenv", lambda: False)
    for key in ("DATABASE_URL", "SUPABASE_URL", "SUPABASE_ANON_KEY", "SERVER_FUNCTION",
                "REQUEST_TIMEOUT", "DEFAULT_SKU", "LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestInitialize:

    def test_defaults(self, env):
        Config.initialize_from_env()

        assert Config.get(Config.DATABASE_URL) == "sqlite:///hydrolab.db"
        assert Config.get(Config.REQUEST_TIMEOUT) == 10.0
        assert Config.get(Config.DEFAULT_SKU) == "H2-1"
        assert Config.get(Config.LOG_LEVEL) == "INFO"
        assert Config.get(Config.SUPABASE_URL) is None

    def test_environment_values(self, env):
        env.setenv("SUPABASE_URL", "https://project.supabase.co/")
        env.setenv("REQUEST_TIMEOUT", "2.5")
        env.setenv("LOG_LEVEL", "debug")

        Config.initialize_from_env()

        assert Config.get(Config.SUPABASE_URL) == "https://project.supabase.co"
        assert Config.get(Config.REQUEST_TIMEOUT) == 2.5
        assert Config.get(Config.LOG_LEVEL) == "DEBUG"

    def test_bad_timeout(self, env):
        env.setenv("REQUEST_TIMEOUT", "soon")

        with pytest.raises(ConfigurationError):
            Config.initialize_from_env()


class TestValidation:

    def test_rest_keys_required_only_on_demand(self, env):
        Config.initialize_from_env()

        Config.validate_critical_keys()
        with pytest.raises(ConfigurationError):
            Config.validate_critical_keys(include_rest=True)

    def test_functions_url(self, env):
        env.setenv("SUPABASE_URL", "https://project.supabase.co")
        Config.initialize_from_env()

        assert Config.functions_url() == "https://project.supabase.co/functions/v1/make-server-05aa3c8a"

    def test_functions_url_without_base(self, env):
        Config.initialize_from_env()

        with pytest.raises(ConfigurationError):
            Config.functions_url()

    def test_runtime_override(self, env):
        Config.set(Config.DEFAULT_SKU, "H2-3")

        assert Config.get_all() == {Config.DEFAULT_SKU: "H2-3"}
