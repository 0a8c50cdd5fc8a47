from __future__ import annotations

import json
from types import SimpleNamespace

import httpx
import pytest
from openai import APITimeoutError, OpenAIError

from app.services import analysis
from app.services.records import Kind
from tests.utils.samples import SAMPLE_ANALYSIS


def _fake_openai_response(payload: str | None = None) -> SimpleNamespace:
    payload = payload if payload is not None else json.dumps(SAMPLE_ANALYSIS)
    message = SimpleNamespace(content=payload)
    choice = SimpleNamespace(message=message)
    return SimpleNamespace(choices=[choice])


def _fake_client(create_fn):
    chat = SimpleNamespace(completions=SimpleNamespace(create=create_fn))
    return SimpleNamespace(chat=chat)


def test_analyze_problem_parses_response(monkeypatch):
    monkeypatch.setattr(
        analysis, "_get_client", lambda: _fake_client(lambda **kw: _fake_openai_response())
    )

    resp = analysis.analyze_problem(Kind.CALCULATOR, "How many moles are in 36 g of water?")
    assert resp["topic"] == SAMPLE_ANALYSIS["topic"]
    assert resp["solution"]["final_answer"] == "2 mol"
    assert [s["step_number"] for s in resp["solution"]["steps"]] == [1, 2, 3]
    assert resp["solution"]["methods"][0]["difficulty"] == "easy"


def test_text_problem_is_sent_as_plain_message(monkeypatch):
    captured: dict = {}

    def _create(**kwargs):
        captured.update(kwargs)
        return _fake_openai_response()

    monkeypatch.setattr(analysis, "_get_client", lambda: _fake_client(_create))

    analysis.analyze_problem(Kind.CALCULATOR, "Balance H2 + O2 -> H2O")

    assert captured["response_format"] == {"type": "json_object"}
    assert captured["timeout"] == analysis.settings.openai_timeout
    assert captured["messages"][0]["role"] == "system"
    assert captured["messages"][1]["content"].endswith("Balance H2 + O2 -> H2O")


def test_photo_is_sent_as_image_url_part(monkeypatch):
    captured: dict = {}

    def _create(**kwargs):
        captured["messages"] = kwargs["messages"]
        return _fake_openai_response()

    monkeypatch.setattr(analysis, "_get_client", lambda: _fake_client(_create))

    analysis.analyze_problem(Kind.PHOTO, "data:image/jpeg;base64,AAAA")

    image_part = captured["messages"][1]["content"][1]
    assert image_part == {
        "type": "image_url",
        "image_url": {"url": "data:image/jpeg;base64,AAAA"},
    }


def test_defaults_fill_optional_fields(monkeypatch):
    minimal = {
        "problem_text": "x",
        "solution": {
            "steps": [{"step_number": 1, "title": "t", "description": "d"}],
            "final_answer": "42",
        },
    }
    monkeypatch.setattr(
        analysis,
        "_get_client",
        lambda: _fake_client(lambda **kw: _fake_openai_response(json.dumps(minimal))),
    )

    resp = analysis.analyze_problem(Kind.CALCULATOR, "x")
    assert resp["topic"] == "General Chemistry"
    assert resp["difficulty"] == "medium"
    assert resp["solution"]["methods"] == []


@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        json.dumps({"problem_text": "x"}),
        json.dumps({"problem_text": "x", "solution": {"steps": [], "final_answer": "1"}}),
    ],
)
def test_malformed_reply_raises_value_error(monkeypatch, payload):
    monkeypatch.setattr(
        analysis,
        "_get_client",
        lambda: _fake_client(lambda **kw: _fake_openai_response(payload)),
    )
    with pytest.raises(ValueError):
        analysis.analyze_problem(Kind.CALCULATOR, "x")


def test_timeout_raises_timeout_error(monkeypatch):
    def _create(**kwargs):
        raise APITimeoutError(request=httpx.Request("POST", "https://api.openai.com"))

    monkeypatch.setattr(analysis, "_get_client", lambda: _fake_client(_create))
    with pytest.raises(TimeoutError):
        analysis.analyze_problem(Kind.CALCULATOR, "x")


def test_client_error_raises_runtime_error(monkeypatch):
    def _create(**kwargs):
        raise OpenAIError("boom")

    monkeypatch.setattr(analysis, "_get_client", lambda: _fake_client(_create))
    with pytest.raises(RuntimeError):
        analysis.analyze_problem(Kind.CALCULATOR, "x")


def test_missing_api_key(monkeypatch):
    monkeypatch.setattr(analysis, "_client", None)
    monkeypatch.setattr(analysis.settings, "openai_api_key", None)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(RuntimeError):
        analysis._get_client()
