from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from nochicken.interfaces.cli import app
from nochicken.utils.llm_client import LLMClient


TRANSCRIPT = """\
user: u1
preferences:
  communication_style: concise
turns:
  - input: add milk
    response: added
    confidence: 0.9
    intent: ADD_ITEM
    entities:
      - {type: ingredient, value: Milk}
state:
  planning_meal: dinner
"""


def test_replay_prints_context(tmp_path: Path) -> None:
    transcript = tmp_path / "transcript.yaml"
    transcript.write_text(TRANSCRIPT, encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(app, ["replay", str(transcript)])

    assert result.exit_code == 0
    assert "- User: add milk" in result.stdout
    assert "Current topics: milk" in result.stdout
    assert "Planning meal for: dinner" in result.stdout
    assert "Communication style: concise" in result.stdout
    assert "check what recipes you can make" in result.stdout


@pytest.mark.parametrize(
    "text",
    [
        "turns:\n  - input: no response\n",
        "turns: add milk\n",
        "state: shopping\n",
        "preferences: [concise]\n",
        "state: {1: x}\n",
    ],
)
def test_replay_rejects_bad_transcript(tmp_path: Path, text: str) -> None:
    transcript = tmp_path / "bad.yaml"
    transcript.write_text(text, encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(app, ["replay", str(transcript), "--user", "u2"])

    assert result.exit_code == 1
    assert "Error" in result.stdout


def test_chat_replies_until_exit(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(LLMClient, "test_connection", lambda self: True)
    monkeypatch.setattr(LLMClient, "generate", lambda self, prompt, model=None: "Milk added.")

    runner = CliRunner()
    result = runner.invoke(app, ["chat", "--user", "u1"], input="add milk\n\nexit\n")

    assert result.exit_code == 0
    assert "Assistant: Milk added." in result.stdout
    assert "not reachable" not in result.stdout


def test_chat_warns_when_service_is_down(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(LLMClient, "test_connection", lambda self: False)

    runner = CliRunner()
    result = runner.invoke(app, ["chat"], input="quit\n")

    assert result.exit_code == 0
    assert "not reachable" in result.stdout
