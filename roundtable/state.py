"""Conversation state builder: pure helpers that return new immutable records."""

import time
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import replace

from roundtable.models import Conversation, Message, Model, Round

USER = "user"
ASSISTANT = "assistant"


def generate_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _next_timestamp(messages: Sequence[Message]) -> int:
    now = time.time_ns() // 1_000_000
    if messages and now <= messages[-1].timestamp:
        return messages[-1].timestamp + 1
    return now


def validate_model_ids(model_ids: Iterable[str], max_models: int) -> tuple[str, ...]:
    """De-duplicate (keeping first occurrence) and bound the selection.

    Raises:
        ValueError: If the selection is empty or larger than max_models.
    """
    unique: list[str] = []
    for model_id in model_ids:
        model_id = model_id.strip()
        if model_id and model_id not in unique:
            unique.append(model_id)
    if not unique:
        raise ValueError("Select at least one model")
    if len(unique) > max_models:
        raise ValueError(f"Select at most {max_models} models, got {len(unique)}")
    return tuple(unique)


def make_message(previous: Sequence[Message], sender: str, content: str, **flags) -> Message:
    """New message stamped later than everything in previous."""
    return Message(
        id=generate_id("msg"),
        sender=sender,
        content=content,
        timestamp=_next_timestamp(previous),
        **flags,
    )


def append_messages(conversation: Conversation, messages: Iterable[Message]) -> Conversation:
    return replace(conversation, messages=conversation.messages + tuple(messages))


def _append(conversation: Conversation, sender: str, content: str, **flags) -> Conversation:
    return append_messages(conversation, [make_message(conversation.messages, sender, content, **flags)])


def new_conversation(
    question: str,
    model_ids: Sequence[str],
    models: Sequence[Model] = (),
    max_rounds: int = 3,
    conversation_id: str | None = None,
) -> Conversation:
    """Fresh conversation holding only the user's question."""
    conversation = Conversation(
        id=conversation_id or generate_id("conv"),
        model_ids=tuple(model_ids),
        models=tuple(models),
        max_rounds=max_rounds,
    )
    return _append(conversation, USER, question)


def begin_follow_up(conversation: Conversation, question: str) -> Conversation:
    """Optimistic follow-up state: user message appended, episode reopened."""
    reopened = _append(conversation, USER, question)
    return replace(reopened, is_complete=False, current_round=1)


def append_round(
    conversation: Conversation,
    rnd: Round,
    current_round: int,
    divider: str | None = None,
) -> Conversation:
    """Merge a finished round and one message per response."""
    updated = conversation
    is_discussion = rnd.discussion_prompt is not None
    if divider is not None:
        updated = _append(updated, ASSISTANT, divider, is_discussion=True)
    for response in rnd.responses:
        updated = _append(
            updated,
            ASSISTANT,
            response.content,
            model_id=response.model_id,
            is_discussion=is_discussion,
        )
    return replace(updated, rounds=updated.rounds + (rnd,), current_round=current_round)


def complete(
    conversation: Conversation,
    summary: str,
    summarizer_id: str,
    divider: str | None = None,
) -> Conversation:
    """Record the episode summary and mark the conversation complete."""
    updated = conversation
    if divider is not None:
        updated = _append(updated, ASSISTANT, divider, is_discussion=True)
    updated = _append(updated, ASSISTANT, summary, model_id=summarizer_id, is_summary=True)
    rounds = updated.rounds
    if rounds:
        rounds = rounds[:-1] + (replace(rounds[-1], summary=summary),)
    return replace(updated, rounds=rounds, summary=summary, is_complete=True)


def next_round_number(conversation: Conversation) -> int:
    return len(conversation.rounds) + 1


def episode_rounds(conversation: Conversation) -> tuple[Round, ...]:
    """Rounds since the most recent round opened by a user question."""
    for index in range(len(conversation.rounds) - 1, -1, -1):
        if conversation.rounds[index].user_question is not None:
            return conversation.rounds[index:]
    return conversation.rounds


def summary_count(conversation: Conversation) -> int:
    return sum(1 for m in conversation.messages if m.is_summary)


def message_round(messages: Sequence[Message], index: int) -> int:
    """Round a message belongs to: user messages up to and including index.

    Messages before the first user message count as round 1.
    """
    if index < 0 or index >= len(messages):
        raise IndexError(f"Message index {index} out of range")
    count = sum(1 for m in messages[: index + 1] if m.sender == USER)
    return max(count, 1)


def best_response_id(conversation: Conversation, round_number: int) -> str | None:
    rnd = next((r for r in conversation.rounds if r.round_number == round_number), None)
    return rnd.best_response_id if rnd else None


def mark_best_response(conversation: Conversation, round_number: int, model_id: str) -> Conversation:
    """Designate model_id as the best answer of a round.

    Raises:
        ValueError: If the round does not exist or the model did not answer in it.
    """
    rounds = list(conversation.rounds)
    for index, rnd in enumerate(rounds):
        if rnd.round_number != round_number:
            continue
        if not any(r.model_id == model_id for r in rnd.responses):
            raise ValueError(f"{model_id} has no response in round {round_number}")
        rounds[index] = replace(rnd, best_response_id=model_id)
        return replace(conversation, rounds=tuple(rounds))
    raise ValueError(f"No round {round_number} in conversation {conversation.id}")
