import pytest

from src.shared.config import Settings


def test_defaults():
    settings = Settings.from_env({})
    assert settings.retry_max_attempts == 3
    assert settings.retry_initial_delay_ms == 1000
    assert settings.retry_max_delay_ms == 10000
    assert settings.retry_backoff_multiplier == 2.0
    assert settings.circuit_failure_threshold == 5
    assert settings.circuit_reset_timeout_seconds == 60.0
    assert settings.status_check_interval_minutes == 30
    assert not settings.is_prod


def test_reads_environment():
    settings = Settings.from_env({
        "ENVIRONMENT": "prod",
        "RETRY_MAX_ATTEMPTS": "5",
        "RETRY_BACKOFF_MULTIPLIER": "1.5",
        "CIRCUIT_RESET_TIMEOUT_SECONDS": "30",
        "PROVIDER_ACCOUNT_ID": "acct-1",
        "LOG_JSON": "false",
    })
    assert settings.is_prod
    assert settings.retry_max_attempts == 5
    assert settings.retry_backoff_multiplier == 1.5
    assert settings.circuit_reset_timeout_seconds == 30.0
    assert settings.provider_account_id == "acct-1"
    assert settings.log_json is False


@pytest.mark.parametrize(
    "env",
    [
        {"RETRY_MAX_ATTEMPTS": "three"},
        {"RETRY_MAX_ATTEMPTS": "0"},
        {"RETRY_INITIAL_DELAY_MS": "5000", "RETRY_MAX_DELAY_MS": "1000"},
        {"RETRY_BACKOFF_MULTIPLIER": "0.5"},
        {"ENVIRONMENT": "qa"},
        {"LOG_LEVEL": "LOUD"},
        {"PROVIDER_API_BASE_URL": "ftp://provider"},
    ],
)
def test_rejects_invalid_values(env):
    with pytest.raises(ValueError):
        Settings.from_env(env)


def test_safe_dict_masks_token():
    settings = Settings.from_env({"PROVIDER_ACCESS_TOKEN": "EAAB-very-secret-token"})
    masked = settings.safe_dict()["provider_access_token"]
    assert "very-secret" not in masked
    assert masked.startswith("EA")
