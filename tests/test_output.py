"""Tests for roundtable/output.py."""

import json

from roundtable.models import Model, ModelResponse
from roundtable.output import _response_preview, console, conversation_to_json, print_conversation, print_models
from roundtable.state import mark_best_response


def test_response_preview_truncates():
    response = ModelResponse("a/m1", " ".join(f"w{i}" for i in range(80)))
    preview = _response_preview(response, words=10)
    assert preview.endswith("...")
    assert len(preview.split()) == 10


def test_response_preview_short_text_untouched():
    assert _response_preview(ModelResponse("a/m1", "Four.")) == "Four."


def test_print_conversation(completed_conversation):
    voted = mark_best_response(completed_conversation, 1, "vendor/m2")
    with console.capture() as capture:
        print_conversation(voted)
    text = capture.get()
    assert "Round 1: Answers" in text
    assert "Final Summary" in text
    assert "Both say 4." in text
    assert "best" in text


def test_print_models():
    with console.capture() as capture:
        print_models([Model("a/m1", "M1", "a M1 model")])
    assert "a/m1" in capture.get()


def test_conversation_to_json(completed_conversation):
    data = json.loads(conversation_to_json(completed_conversation))
    assert data["id"] == "conv-test"
    assert data["is_complete"] is True
    assert data["rounds"][0]["responses"][1] == {"model_id": "vendor/m2", "content": "It is 4."}
    assert [m["is_summary"] for m in data["messages"]].count(True) == 1
