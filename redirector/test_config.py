import argparse
import dataclasses

import pytest

from redirector.config import (
    Settings,
    build_parser,
    parse_args,
    parse_duration,
    split_host_port,
)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("5s", 5.0),
        ("0", 0.0),
        ("250ms", 0.25),
        ("1m30s", 90.0),
        ("1.5h", 5400.0),
        ("2us", 2e-6),
        ("+10s", 10.0),
    ],
)
def test_parse_duration_accepts_duration_strings(text, expected):
    assert parse_duration(text) == pytest.approx(expected)


@pytest.mark.parametrize("text", ["", "5", "s", "5x", "-5s", "1m30", "+"])
def test_parse_duration_rejects_malformed_input(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_split_host_port():
    assert split_host_port("0.0.0.0:8080") == ("0.0.0.0", 8080)
    assert split_host_port(":9000") == ("0.0.0.0", 9000)
    assert split_host_port("[::1]:80") == ("::1", 80)


@pytest.mark.parametrize(
    "address", ["localhost", "localhost:http", "host:", "host:99999", "[::1]:65536"]
)
def test_split_host_port_rejects_missing_port(address):
    with pytest.raises(ValueError):
        split_host_port(address)


def test_defaults(monkeypatch):
    for name in (
        "REDIRECTOR_HOST",
        "REDIRECTOR_REDIRECT",
        "REDIRECTOR_DEBUG",
        "REDIRECTOR_GRACEFUL_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = parse_args([])

    assert settings == Settings(
        host="0.0.0.0:8080",
        redirect="https://google.com",
        debug=False,
        graceful_timeout=5.0,
    )
    assert settings.bind == ("0.0.0.0", 8080)


def test_single_dash_flags():
    settings = parse_args(
        [
            "-host",
            "127.0.0.1:9999",
            "-redirect=https://example.com",
            "-debug",
            "-graceful-timeout",
            "1m",
        ]
    )

    assert settings.host == "127.0.0.1:9999"
    assert settings.redirect == "https://example.com"
    assert settings.debug is True
    assert settings.graceful_timeout == 60.0


def test_double_dash_flags():
    settings = parse_args(["--redirect", "https://example.org", "--graceful-timeout=2s"])

    assert settings.redirect == "https://example.org"
    assert settings.graceful_timeout == 2.0


def test_environment_overrides_defaults(monkeypatch):
    monkeypatch.setenv("REDIRECTOR_HOST", "127.0.0.1:7000")
    monkeypatch.setenv("REDIRECTOR_REDIRECT", "https://example.net")
    monkeypatch.setenv("REDIRECTOR_DEBUG", "true")
    monkeypatch.setenv("REDIRECTOR_GRACEFUL_TIMEOUT", "750ms")

    assert Settings.from_env() == Settings(
        host="127.0.0.1:7000",
        redirect="https://example.net",
        debug=True,
        graceful_timeout=0.75,
    )
    # Flags still win over the environment.
    assert parse_args(["-redirect", "https://example.com"]).redirect == (
        "https://example.com"
    )


@pytest.mark.parametrize(
    "argv", [["-graceful-timeout", "soon"], ["-host", "nowhere"]]
)
def test_invalid_flag_values_exit_with_usage_error(argv, capsys):
    with pytest.raises(SystemExit) as exc_info:
        parse_args(argv)

    assert exc_info.value.code == 2
    assert "error" in capsys.readouterr().err


def test_settings_are_immutable():
    settings = Settings()
    with pytest.raises(dataclasses.FrozenInstanceError):
        settings.redirect = "https://example.com"


def test_parser_uses_environment_defaults(monkeypatch):
    monkeypatch.setenv("REDIRECTOR_REDIRECT", "https://example.com")
    parser = build_parser()
    assert isinstance(parser, argparse.ArgumentParser)
    assert parser.parse_args([]).redirect == "https://example.com"


def test_highest_port_is_accepted():
    assert split_host_port("127.0.0.1:65535") == ("127.0.0.1", 65535)


def test_out_of_range_port_is_a_usage_error(capsys):
    with pytest.raises(SystemExit) as exc_info:
        parse_args(["-host", "127.0.0.1:99999"])

    assert exc_info.value.code == 2
    assert "invalid port" in capsys.readouterr().err


def test_invalid_environment_timeout_is_overridden_by_flag(monkeypatch):
    monkeypatch.setenv("REDIRECTOR_GRACEFUL_TIMEOUT", "soon")

    assert parse_args(["-graceful-timeout", "1s"]).graceful_timeout == 1.0


@pytest.mark.parametrize(
    "name,value",
    [("REDIRECTOR_GRACEFUL_TIMEOUT", "soon"), ("REDIRECTOR_HOST", "nowhere")],
)
def test_invalid_environment_value_is_a_usage_error(
    monkeypatch, capsys, name, value
):
    monkeypatch.setenv(name, value)

    with pytest.raises(SystemExit) as exc_info:
        parse_args([])

    assert exc_info.value.code == 2
    assert "error" in capsys.readouterr().err


def test_from_env_rejects_invalid_timeout(monkeypatch):
    monkeypatch.setenv("REDIRECTOR_GRACEFUL_TIMEOUT", "soon")

    with pytest.raises(ValueError):
        Settings.from_env()
