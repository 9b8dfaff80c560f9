"""Tests for the fare configuration check script."""

from __future__ import annotations

import importlib.util
import json
from pathlib import Path
from types import ModuleType

import pytest
import yaml

from app.services.fare_config_service import DEFAULT_FARE_FILE

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "check_fare_config.py"


@pytest.fixture(scope="module")
def script() -> ModuleType:
    spec = importlib.util.spec_from_file_location("check_fare_config", SCRIPT)
    assert spec and spec.loader
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_bundled_config_is_valid(script: ModuleType) -> None:
    assert script.main([]) == 0


def test_invalid_config_fails(script: ModuleType, tmp_path: Path) -> None:
    data = yaml.safe_load(DEFAULT_FARE_FILE.read_text(encoding="utf-8"))
    data["vehicles"]["tesla"]["price_tiers"][1]["rate_per_mile"] = 4
    broken = tmp_path / "fares.yaml"
    broken.write_text(yaml.safe_dump(data), encoding="utf-8")

    assert script.main([str(broken)]) == 1


def test_sample_quote_is_printed(
    script: ModuleType, capsys: pytest.CaptureFixture[str]
) -> None:
    code = script.main(
        ["--vehicle", "sprinter", "--miles", "45", "--minutes", "60", "--at", "2025-03-08T20:00"]
    )
    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["quote"]["final_price"] == "299.00"
    assert payload["summary"]["final_price"] == "$299"


def test_sample_outside_service_area(
    script: ModuleType, capsys: pytest.CaptureFixture[str]
) -> None:
    assert script.main(["--vehicle", "escalade", "--miles", "300"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["service_area"]["max_service_distance"] == "280"


def test_unknown_vehicle_fails(script: ModuleType) -> None:
    assert script.main(["--vehicle", "limo", "--miles", "10"]) == 1


def test_malformed_config_fails_cleanly(
    script: ModuleType, tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    data = yaml.safe_load(DEFAULT_FARE_FILE.read_text(encoding="utf-8"))
    del data["vehicles"]["tesla"]["price_tiers"][0]["rate_per_mile"]
    broken = tmp_path / "fares.yaml"
    broken.write_text(yaml.safe_dump(data), encoding="utf-8")

    assert script.main([str(broken)]) == 1
    assert "tesla tier 1: missing rate_per_mile" in caplog.text


def test_missing_config_file_fails(script: ModuleType, tmp_path: Path) -> None:
    assert script.main([str(tmp_path / "absent.yaml")]) == 1
