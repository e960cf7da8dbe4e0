import json

import pytest

from uilocate.core.budget import AnalysisBudget
from uilocate.core.config import Config
from uilocate.utils import clamp, format_duration, save_json


def test_defaults_match_engine_constants():
    settings = Config()
    assert settings.coverage_threshold == 0.3
    assert settings.max_refinement_depth == 2
    assert settings.max_api_calls == 10
    assert settings.crop_multipliers == [0.4, 0.6, 0.8]
    assert settings.validate_config()


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("MAX_API_CALLS", "4")
    monkeypatch.setenv("CORRECTION_MODE", "alignment")
    settings = Config()
    assert settings.max_api_calls == 4
    assert settings.correction_mode == "alignment"


@pytest.mark.parametrize(
    "overrides",
    [
        {"coverage_threshold": 0},
        {"max_api_calls": 0},
        {"crop_multipliers": [0.4, 1.5]},
        {"correction_mode": "guess"},
    ],
)
def test_invalid_settings_are_rejected(overrides):
    with pytest.raises(ValueError):
        Config(**overrides).validate_config()


def test_missing_api_key_is_reported():
    with pytest.raises(ValueError):
        Config(openai_api_key="").validate_oracle_config()


def test_budget_counts_and_caps():
    ticks = iter([0.0, 2.5])
    budget = AnalysisBudget(max_api_calls=2, max_depth=2, clock=lambda: next(ticks))

    assert budget.remaining == 2
    budget.record_call()
    assert not budget.exhausted
    assert budget.record_call() == 2
    assert budget.exhausted
    assert budget.depth_exhausted(2) and not budget.depth_exhausted(1)
    assert budget.elapsed() == 2.5


@pytest.mark.asyncio
async def test_budget_async_counter():
    budget = AnalysisBudget()
    assert await budget.record_call_async() == 1
    budget.reset()
    assert budget.api_call_count == 0


def test_helpers(tmp_path):
    assert clamp(5, 0, 3) == 3
    assert format_duration(0.25) == "250ms"
    assert format_duration(75) == "1m 15s"
    path = str(tmp_path / "x.json")
    assert save_json({"a": 1}, path)
    with open(path, encoding="utf-8") as f:
        assert json.load(f) == {"a": 1}
