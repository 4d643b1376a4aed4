"""Immutable dataclasses for the Roundtable negotiation. No logic, no deps."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Model:
    id: str                # provider-qualified, e.g. "meta-llama/llama-3-8b-instruct"
    name: str              # display name
    description: str
    is_free: bool = True


@dataclass(frozen=True)
class ChatTurn:
    role: str              # "system", "user" or "assistant"
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class Message:
    id: str
    sender: str            # "user" or "assistant"
    content: str
    timestamp: int         # epoch milliseconds, strictly increasing per conversation
    model_id: str | None = None
    is_discussion: bool = False
    is_summary: bool = False


@dataclass(frozen=True)
class ModelResponse:
    model_id: str
    content: str


@dataclass(frozen=True)
class Round:
    round_number: int
    responses: tuple[ModelResponse, ...] = ()
    user_question: str | None = None
    discussion_prompt: str | None = None
    summary: str | None = None
    best_response_id: str | None = None


@dataclass(frozen=True)
class Conversation:
    id: str
    model_ids: tuple[str, ...]
    models: tuple[Model, ...] = ()
    messages: tuple[Message, ...] = ()
    rounds: tuple[Round, ...] = ()
    current_round: int = 0
    max_rounds: int = 3
    is_complete: bool = False
    summary: str | None = None
