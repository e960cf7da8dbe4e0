import json

import pytest

from uilocate import cli
from uilocate.core.errors import OracleTransportError
from uilocate.vision.models import LocalizationReport


class StubLocator:
    """Stands in for ElementLocator; returns a canned report."""

    outcome = None

    def __init__(self):
        self.saved = None

    async def locate(self, image, target=None, mode="progressive"):
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return LocalizationReport(detections=[], analysis_method=mode, total_api_calls=1)

    def save_debug(self, path=None):
        self.saved = path
        return path


@pytest.fixture
def stub_locator(monkeypatch):
    StubLocator.outcome = None
    monkeypatch.setattr(cli, "ElementLocator", StubLocator)
    return StubLocator


def test_locate_prints_json(stub_locator, capsys):
    assert cli.main(["locate", "shot.png", "--json", "--mode", "feedback"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["analysis_method"] == "feedback"
    assert data["total_api_calls"] == 1


def test_locate_summary_output(stub_locator, capsys):
    assert cli.main(["locate", "shot.png"]) == 0
    assert "Found 0 element(s)" in capsys.readouterr().out


def test_oracle_failure_exit_code(stub_locator):
    stub_locator.outcome = OracleTransportError("down")
    assert cli.main(["locate", "shot.png"]) == 1


def test_rejects_unknown_mode(stub_locator):
    with pytest.raises(SystemExit):
        cli.main(["locate", "shot.png", "--mode", "sideways"])
