from datetime import datetime, timezone

import pytest

from hyperv_provider.core import config_validation
from hyperv_provider.core.config import Settings


@pytest.fixture(autouse=True)
def restore_config_validation(monkeypatch):
    original_settings = config_validation.settings
    original_setter = config_validation.set_config_validation_result
    original_getter = config_validation.get_config_validation_result

    monkeypatch.setattr(config_validation, "settings", Settings(), raising=False)
    monkeypatch.setattr(
        config_validation,
        "set_config_validation_result",
        lambda result: None,
        raising=False,
    )
    monkeypatch.setattr(
        config_validation,
        "get_config_validation_result",
        lambda: None,
        raising=False,
    )
    yield
    monkeypatch.setattr(config_validation, "settings", original_settings, raising=False)
    monkeypatch.setattr(
        config_validation,
        "set_config_validation_result",
        original_setter,
        raising=False,
    )
    monkeypatch.setattr(
        config_validation,
        "get_config_validation_result",
        original_getter,
        raising=False,
    )


def _messages(issues):
    return {issue.message for issue in issues}


def test_run_config_checks_reports_missing_credentials():
    # Defaults use NTLM without credentials, which should surface errors
    result = config_validation.run_config_checks(force=True)

    assert result.has_errors
    assert any("HYPERV_USER and HYPERV_PASSWORD" in message for message in _messages(result.errors))
    assert any("HYPERV_HOST not provided" in message for message in _messages(result.warnings))


def test_run_config_checks_accepts_complete_configuration(monkeypatch):
    custom_settings = Settings(host="hv01", user="admin", password="secret")
    monkeypatch.setattr(config_validation, "settings", custom_settings, raising=False)

    result = config_validation.run_config_checks(force=True)

    assert not result.has_errors
    assert not result.has_warnings


def test_run_config_checks_returns_cached_result(monkeypatch):
    cached_result = config_validation.ConfigValidationResult(
        checked_at=datetime.now(timezone.utc)
    )

    def fake_get_cached():
        return cached_result

    def fail_if_called(_):
        raise AssertionError("set_config_validation_result should not be called when cached")

    monkeypatch.setattr(config_validation, "get_config_validation_result", fake_get_cached, raising=False)
    monkeypatch.setattr(config_validation, "set_config_validation_result", fail_if_called, raising=False)

    result = config_validation.run_config_checks()
    assert result is cached_result


def test_custom_settings_bypass_the_cache(monkeypatch):
    def fail_if_called(*_):
        raise AssertionError("custom settings must not touch the cache")

    monkeypatch.setattr(config_validation, "get_config_validation_result", fail_if_called, raising=False)
    monkeypatch.setattr(config_validation, "set_config_validation_result", fail_if_called, raising=False)

    result = config_validation.run_config_checks(
        custom_settings=Settings(host="hv01", user="admin", password="secret")
    )

    assert not result.has_errors


def test_missing_certificate_files_are_errors(tmp_path):
    key = tmp_path / "client.key"
    key.write_text("key")

    result = config_validation.run_config_checks(
        custom_settings=Settings(host="hv01", cert_path=str(tmp_path / "missing.pem"), key_path=str(key))
    )

    errors = _messages(result.errors)
    assert any("HYPERV_CERT_PATH" in message for message in errors)
    assert not any("HYPERV_KEY_PATH" in message for message in errors)
    assert not any("HYPERV_USER" in message for message in errors)


def test_half_configured_certificate_is_a_warning():
    result = config_validation.run_config_checks(
        custom_settings=Settings(host="hv01", user="admin", password="secret", cert_path="/c.pem")
    )

    assert not result.has_errors
    assert any("HYPERV_CERT_PATH and HYPERV_KEY_PATH" in message for message in _messages(result.warnings))


def test_insecure_and_plain_basic_auth_warn():
    result = config_validation.run_config_checks(
        custom_settings=Settings(host="hv01", user="admin", password="secret", use_ntlm=False, https=False)
    )
    assert any("clear text" in message for message in _messages(result.warnings))

    result = config_validation.run_config_checks(
        custom_settings=Settings(host="hv01", user="admin", password="secret", insecure=True)
    )
    assert any("HYPERV_INSECURE" in message for message in _messages(result.warnings))


def test_missing_cacert_is_an_error():
    result = config_validation.run_config_checks(
        custom_settings=Settings(host="hv01", user="admin", password="secret", cacert_path="/nope/ca.pem")
    )

    assert any("HYPERV_CACERT_PATH" in message for message in _messages(result.errors))


def test_script_path_without_placeholder_warns():
    result = config_validation.run_config_checks(
        custom_settings=Settings(host="hv01", user="admin", password="secret", script_path="C:/Temp/run.ps1")
    )

    assert any("%RAND%" in message for message in _messages(result.warnings))


def test_timeouts_are_cross_checked():
    result = config_validation.run_config_checks(
        custom_settings=Settings(
            host="hv01",
            user="admin",
            password="secret",
            timeout="500ms",
            operation_timeout=40.0,
            read_timeout=30.0,
        )
    )

    assert any("poll interval" in message for message in _messages(result.warnings))
    assert any("HYPERV_OPERATION_TIMEOUT" in message for message in _messages(result.errors))


def test_staging_chunk_must_fit_inline_limit():
    oversized = config_validation.run_config_checks(
        custom_settings=Settings(
            host="hv01",
            user="admin",
            password="secret",
            max_inline_script_length=16000,
            staging_chunk_size=48000,
        )
    )
    defaults = config_validation.run_config_checks(
        custom_settings=Settings(host="hv01", user="admin", password="secret")
    )

    assert any("HYPERV_STAGING_CHUNK_SIZE" in message for message in _messages(oversized.warnings))
    assert not any("HYPERV_STAGING_CHUNK_SIZE" in message for message in _messages(defaults.warnings))
    assert Settings().staging_chunk_size < Settings().max_inline_script_length
