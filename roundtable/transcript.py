"""Transcript builders: turn the round log into role-tagged chat turns."""

from collections.abc import Sequence

from config.config_loader import PromptsConfig
from roundtable.models import ChatTurn, ModelResponse, Round


def initial_transcript(question: str, prompts: PromptsConfig) -> list[ChatTurn]:
    return [
        ChatTurn("system", prompts.initial_system),
        ChatTurn("user", question),
    ]


def discussion_prompt(previous: Sequence[ModelResponse], prompts: PromptsConfig) -> str:
    """Concatenate the previous round's answers, labeled 'Model N' by position."""
    entries = [
        prompts.discussion_entry.format(index=index, content=response.content)
        for index, response in enumerate(previous, start=1)
    ]
    return prompts.discussion_intro + "\n\n" + "\n".join(entries)


def discussion_transcript(prompt: str, prompts: PromptsConfig) -> list[ChatTurn]:
    return [
        ChatTurn("system", prompts.discussion_system),
        ChatTurn("user", prompt),
    ]


def _short_label(model_id: str, fallback: int) -> str:
    return model_id.split("/")[-1] or str(fallback)


def summary_transcript(
    question: str,
    rounds: Sequence[Round],
    prompts: PromptsConfig,
) -> list[ChatTurn]:
    """Summary request holding the question and every response of the given rounds."""
    all_responses = [response for rnd in rounds for response in rnd.responses]
    entries = [
        prompts.summary_entry.format(
            label=_short_label(response.model_id, index),
            content=response.content,
        )
        for index, response in enumerate(all_responses, start=1)
    ]
    return [
        ChatTurn("system", prompts.summary_system),
        ChatTurn("user", prompts.summary.format(question=question, responses="\n".join(entries))),
    ]


def follow_up_transcript(
    model_id: str,
    original_question: str,
    first_round: Round | None,
    summary: str | None,
    question: str,
    prompts: PromptsConfig,
) -> list[ChatTurn]:
    """Replay the original exchange for one model, then ask the new question."""
    turns = [
        ChatTurn("system", prompts.followup_system),
        ChatTurn("user", original_question),
    ]
    if first_round is not None:
        own = next((r for r in first_round.responses if r.model_id == model_id), None)
        if own is not None:
            turns.append(ChatTurn("assistant", own.content))
    if summary:
        turns.append(ChatTurn("system", prompts.followup_summary_note.format(summary=summary)))
    turns.append(ChatTurn("user", question))
    return turns
