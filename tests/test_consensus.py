"""Tests for roundtable/consensus.py."""

import pytest

from config.config_loader import ConsensusConfig
from roundtable.consensus import ALL_AGREE, FIRST_AGREES, apply_policy, first_agreeing_index, signals_agreement
from roundtable.models import ModelResponse


@pytest.mark.parametrize(
    "text,expected",
    [
        ("我同意以上回答", True),
        ("I agree with the answers above.", True),
        ("AGREE", True),
        ("我不同意模型2", False),
        ("我不赞同这个说法，但同意模型1", False),
        ("I disagree.", False),
        ("Model 2 is best.", False),
        ("", False),
    ],
)
def test_signals_agreement(text, expected):
    assert signals_agreement(text, ConsensusConfig()) is expected


def test_custom_keywords():
    config = ConsensusConfig(agree_keywords=["lgtm"], negation_keywords=["not lgtm"])
    assert signals_agreement("LGTM!", config)
    assert not signals_agreement("Not LGTM", config)
    assert not signals_agreement("I agree", config)


def _responses(*texts: str) -> list[ModelResponse]:
    return [ModelResponse(f"m{i}", t) for i, t in enumerate(texts, start=1)]


def test_first_agreeing_index():
    config = ConsensusConfig()
    assert first_agreeing_index(_responses("no", "同意", "agree"), config) == 1
    assert first_agreeing_index(_responses("no", "nope"), config) is None


def test_first_agrees_cuts_after_first_agreement():
    kept, agreed = apply_policy(_responses("no", "I agree", "I agree too"), FIRST_AGREES, ConsensusConfig())
    assert agreed is True
    assert [r.model_id for r in kept] == ["m1", "m2"]


def test_first_agrees_without_agreement_keeps_all():
    kept, agreed = apply_policy(_responses("no", "nope"), FIRST_AGREES, ConsensusConfig())
    assert agreed is False
    assert len(kept) == 2


def test_all_agree_needs_everyone():
    config = ConsensusConfig()
    kept, agreed = apply_policy(_responses("I agree", "no"), ALL_AGREE, config)
    assert agreed is False
    assert len(kept) == 2

    kept, agreed = apply_policy(_responses("I agree", "同意"), ALL_AGREE, config)
    assert agreed is True


def test_all_agree_on_empty_round_is_not_consensus():
    assert apply_policy([], ALL_AGREE, ConsensusConfig()) == ([], False)


def test_unknown_policy():
    with pytest.raises(ValueError):
        apply_policy(_responses("x"), "majority", ConsensusConfig())
