"""Consensus detection for discussion rounds."""

from collections.abc import Sequence

from config.config_loader import ConsensusConfig
from roundtable.models import ModelResponse

FIRST_AGREES = "first_agrees"
ALL_AGREE = "all_agree"


def signals_agreement(text: str, config: ConsensusConfig) -> bool:
    """True when the text contains an agreement keyword and no negation of it.

    Latin keywords match case-insensitively.
    """
    lowered = text.lower()
    if any(neg.lower() in lowered for neg in config.negation_keywords):
        return False
    return any(kw.lower() in lowered for kw in config.agree_keywords)


def first_agreeing_index(responses: Sequence[ModelResponse], config: ConsensusConfig) -> int | None:
    """Index of the first response, in selection order, that signals agreement."""
    for index, response in enumerate(responses):
        if signals_agreement(response.content, config):
            return index
    return None


def apply_policy(
    responses: Sequence[ModelResponse],
    policy: str,
    config: ConsensusConfig,
) -> tuple[list[ModelResponse], bool]:
    """Cut a full round of critiques down to what the policy keeps.

    Returns:
        (kept_responses, reached_consensus). With first_agrees, responses
        after the first agreeing model are dropped. With all_agree, every
        response is kept and consensus needs all of them to agree.
    """
    if policy == FIRST_AGREES:
        index = first_agreeing_index(responses, config)
        if index is None:
            return list(responses), False
        return list(responses[: index + 1]), True
    if policy == ALL_AGREE:
        agreed = bool(responses) and all(signals_agreement(r.content, config) for r in responses)
        return list(responses), agreed
    raise ValueError(f"Unknown consensus policy: {policy!r}")
