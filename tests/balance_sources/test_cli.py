"""
Tests for the command line entry point.
"""

import json

import pytest

from balance_sources.cli import build_parser, main


def test_decode_prints_records(tmp_path, capsys):
    path = tmp_path / "privatbank.json"
    path.write_text('{"accounts": [{"id": "A1", "balance": "5,5", "currency": "usd"}]}')

    assert main(["decode", "privatbank", str(path)]) == 0

    records = json.loads(capsys.readouterr().out)
    assert records == [{
        "identifier": "A1",
        "title": "A1",
        "currency_code": "USD",
        "amount": "5.5",
        "provider": "privatbank",
    }]


def test_decode_prints_classified_failure(tmp_path, capsys):
    path = tmp_path / "wise.json"
    path.write_text('{"error": "unauthorized"}')

    assert main(["decode", "wise", str(path)]) == 1

    error = json.loads(capsys.readouterr().out)
    assert error["kind"] == "generic_message"
    assert error["message"] == "unauthorized"


def test_invalid_configuration_exits_early(monkeypatch):
    monkeypatch.setenv("REQUEST_TIMEOUT_SECONDS", "-1")

    assert main(["fetch"]) == 2


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
