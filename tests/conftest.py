"""Shared pytest fixtures."""

import asyncio
from collections.abc import Callable, Sequence

import pytest

from config.config_loader import ConsensusConfig, PromptsConfig, RouterConfig
from roundtable.models import ChatTurn, Conversation, Message, ModelResponse, Round
from roundtable.providers.base import ChatProvider

SYSTEM_PROMPTS = {
    "SYS-ANSWER": "answer",
    "SYS-DISCUSS": "discussion",
    "SYS-SUMMARY": "summary",
    "SYS-FOLLOWUP": "follow-up",
}


@pytest.fixture
def prompts() -> PromptsConfig:
    return PromptsConfig(
        initial_system="SYS-ANSWER",
        discussion_system="SYS-DISCUSS",
        discussion_intro="Critique these answers:",
        discussion_entry="Model {index}'s answer:\n{content}\n",
        summary_system="SYS-SUMMARY",
        summary="Original question: {question}\n\n{responses}",
        summary_entry="Model {label}'s answer:\n{content}\n",
        followup_system="SYS-FOLLOWUP",
        followup_summary_note="Summary of the earlier discussion: {summary}",
        round_divider="==== Round {round} discussion ====",
        summary_divider="==== Final summary ====",
    )


@pytest.fixture
def consensus() -> ConsensusConfig:
    return ConsensusConfig()


@pytest.fixture
def router_config() -> RouterConfig:
    return RouterConfig(
        base_url="https://router.test",
        timeout_sec=5,
        api_key_env="ROUNDTABLE_TEST_KEY",
        models_path="/free/models",
        catalog_cache_sec=10,
    )


Script = Callable[[str, str], object]


class ScriptedProvider(ChatProvider):
    """Test double: replies come from script(model_id, stage).

    The stage is read from the transcript's system prompt, so tests can
    answer differently in the answer, discussion, summary and follow-up
    phases. Every call is recorded in `calls`.
    """

    def __init__(
        self,
        script: Script | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        self._script = script or (lambda model_id, stage: f"{stage} from {model_id}")
        self._delays = delays or {}
        self.calls: list[tuple[str, str, list[ChatTurn]]] = []

    def name(self) -> str:
        return "scripted"

    def calls_for(self, stage: str) -> list[str]:
        return [model_id for model_id, s, _ in self.calls if s == stage]

    async def complete(self, model_id: str, transcript: Sequence[ChatTurn]) -> str:
        stage = SYSTEM_PROMPTS.get(transcript[0].content, "ping")
        self.calls.append((model_id, stage, list(transcript)))
        delay = self._delays.get(model_id)
        if delay:
            await asyncio.sleep(delay)
        result = self._script(model_id, stage)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def scripted_provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def sample_round() -> Round:
    return Round(
        round_number=1,
        user_question="What is 2+2?",
        responses=(
            ModelResponse("vendor/m1", "4"),
            ModelResponse("vendor/m2", "It is 4."),
        ),
    )


@pytest.fixture
def completed_conversation(sample_round: Round) -> Conversation:
    """A finished one-episode conversation on two models."""
    messages = (
        Message("msg-1", "user", "What is 2+2?", 1000),
        Message("msg-2", "assistant", "4", 1001, model_id="vendor/m1"),
        Message("msg-3", "assistant", "It is 4.", 1002, model_id="vendor/m2"),
        Message("msg-4", "assistant", "==== Final summary ====", 1003, is_discussion=True),
        Message("msg-5", "assistant", "Both say 4.", 1004, model_id="vendor/m1", is_summary=True),
    )
    return Conversation(
        id="conv-test",
        model_ids=("vendor/m1", "vendor/m2"),
        messages=messages,
        rounds=(Round(1, sample_round.responses, user_question="What is 2+2?", summary="Both say 4."),),
        current_round=1,
        max_rounds=3,
        is_complete=True,
        summary="Both say 4.",
    )
