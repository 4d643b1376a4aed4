"""Negotiation orchestration: answer round, critique rounds, summary, follow-ups."""

import asyncio
import contextlib
import logging
from collections.abc import Callable, Iterator, Sequence

from config.config_loader import AppConfig, ConsensusConfig, PromptsConfig
from roundtable.catalog import CatalogUnavailable, ModelCatalog
from roundtable.consensus import ALL_AGREE, FIRST_AGREES, apply_policy, signals_agreement
from roundtable.models import ChatTurn, Conversation, Model, ModelResponse, Round
from roundtable.providers.base import ChatProvider, ModelError, ProviderError
from roundtable.state import (
    append_round,
    begin_follow_up,
    complete,
    episode_rounds,
    new_conversation,
    next_round_number,
    validate_model_ids,
)
from roundtable.transcript import (
    discussion_prompt,
    discussion_transcript,
    follow_up_transcript,
    initial_transcript,
    summary_transcript,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROUNDS = 3
DEFAULT_MAX_MODELS = 4


class EpisodeFailed(Exception):
    """A model call failed and the whole question episode was abandoned.

    Attributes:
        stage: "catalog", "answer", "discussion", "follow-up" or "summary".
        conversation: The last complete conversation for a failed follow-up,
            None when a new conversation failed.
    """

    def __init__(self, message: str, stage: str, conversation: Conversation | None = None) -> None:
        self.stage = stage
        self.conversation = conversation
        super().__init__(message)


class ConversationBusy(Exception):
    """Raised when an episode is already running for the conversation."""


class Negotiator:
    """Runs question episodes across a panel of models.

    Args:
        provider: Completion client shared by all models.
        prompts: Prompt templates.
        consensus: Agreement and negation keywords.
        catalog: Optional model catalog used to resolve display records.
        max_rounds: Rounds per episode, answer round included.
        max_models: Largest accepted selection.
        policy: "first_agrees" or "all_agree".
        concurrent: Call the models of a round in parallel.
        on_update: Called with each intermediate conversation state.
    """

    def __init__(
        self,
        provider: ChatProvider,
        prompts: PromptsConfig,
        consensus: ConsensusConfig | None = None,
        catalog: ModelCatalog | None = None,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        max_models: int = DEFAULT_MAX_MODELS,
        policy: str = FIRST_AGREES,
        concurrent: bool = True,
        on_update: Callable[[Conversation], None] | None = None,
    ) -> None:
        if max_rounds < 1:
            raise ValueError(f"max_rounds must be at least 1, got {max_rounds}")
        if policy not in (FIRST_AGREES, ALL_AGREE):
            raise ValueError(f"Unknown consensus policy: {policy!r}")
        self._provider = provider
        self._prompts = prompts
        self._consensus = consensus or ConsensusConfig()
        self._catalog = catalog
        self._max_rounds = max_rounds
        self._max_models = max_models
        self._policy = policy
        self._concurrent = concurrent
        self._on_update = on_update
        self._active: set[str] = set()

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        provider: ChatProvider,
        catalog: ModelCatalog | None = None,
        on_update: Callable[[Conversation], None] | None = None,
    ) -> "Negotiator":
        return cls(
            provider=provider,
            prompts=config.prompts,
            consensus=config.consensus,
            catalog=catalog,
            max_rounds=config.negotiation.max_rounds,
            max_models=config.negotiation.max_models,
            policy=config.negotiation.consensus_policy,
            concurrent=config.negotiation.concurrent,
            on_update=on_update,
        )

    def _publish(self, conversation: Conversation) -> None:
        if self._on_update:
            self._on_update(conversation)

    @contextlib.contextmanager
    def _single_flight(self, conversation_id: str) -> Iterator[None]:
        if conversation_id in self._active:
            raise ConversationBusy(f"Conversation {conversation_id} already has an episode in progress")
        self._active.add(conversation_id)
        try:
            yield
        finally:
            self._active.discard(conversation_id)

    async def _resolve_models(self, model_ids: Sequence[str]) -> tuple[Model, ...]:
        if self._catalog is None:
            return ()
        try:
            available = await self._catalog.fetch_models()
        except CatalogUnavailable as exc:
            raise EpisodeFailed(f"Model catalog unavailable: {exc}", stage="catalog") from exc
        by_id = {m.id: m for m in available}
        for model_id in model_ids:
            if model_id not in by_id:
                logger.warning("Model %s is not in the catalog", model_id)
        return tuple(by_id[m] for m in model_ids if m in by_id)

    async def _call(self, model_id: str, transcript: Sequence[ChatTurn]) -> ModelResponse:
        logger.debug("Calling %s with %d turns", model_id, len(transcript))
        try:
            content = await self._provider.complete(model_id, transcript)
        except ProviderError:
            raise
        except Exception as exc:
            raise ModelError(model_id, f"Unexpected error: {exc}") from exc
        return ModelResponse(model_id=model_id, content=content)

    async def _fan_out(
        self,
        stage: str,
        calls: Sequence[tuple[str, Sequence[ChatTurn]]],
        stop: Callable[[ModelResponse], bool] | None = None,
    ) -> list[ModelResponse]:
        """Call every model; results keep the order of `calls`.

        Both modes stop at the first response `stop` accepts, in selection
        order. Concurrent mode calls every model but ignores results (and
        failures) after that point.

        Raises:
            EpisodeFailed: On the first failure in selection order.
        """
        try:
            if not self._concurrent:
                responses: list[ModelResponse] = []
                for model_id, transcript in calls:
                    response = await self._call(model_id, transcript)
                    responses.append(response)
                    if stop and stop(response):
                        break
                return responses

            results = await asyncio.gather(
                *(self._call(model_id, transcript) for model_id, transcript in calls),
                return_exceptions=True,
            )
            responses = []
            for result in results:
                if isinstance(result, BaseException):
                    raise result
                responses.append(result)
                if stop and stop(result):
                    break
            return responses
        except ProviderError as exc:
            logger.warning("Model %s failed during %s: %s", exc.model_id, stage, exc)
            raise EpisodeFailed(f"{stage} failed: {exc}", stage=stage) from exc

    async def _discuss(self, conversation: Conversation) -> Conversation:
        """Critique rounds until consensus or the round cap."""
        def agrees(response: ModelResponse) -> bool:
            return signals_agreement(response.content, self._consensus)

        stop = agrees if self._policy == FIRST_AGREES else None

        while conversation.current_round < conversation.max_rounds:
            local_round = conversation.current_round + 1
            prompt = discussion_prompt(conversation.rounds[-1].responses, self._prompts)
            transcript = discussion_transcript(prompt, self._prompts)

            logger.info(
                "Starting discussion round %d/%d with %d models",
                local_round,
                conversation.max_rounds,
                len(conversation.model_ids),
            )
            responses = await self._fan_out(
                "discussion",
                [(model_id, transcript) for model_id in conversation.model_ids],
                stop=stop,
            )
            kept, agreed = apply_policy(responses, self._policy, self._consensus)

            rnd = Round(
                round_number=next_round_number(conversation),
                discussion_prompt=prompt,
                responses=tuple(kept),
            )
            conversation = append_round(
                conversation,
                rnd,
                current_round=local_round,
                divider=self._prompts.round_divider.format(round=local_round),
            )
            self._publish(conversation)

            if agreed:
                logger.info(
                    "Consensus reached in round %d (%d/%d critiques kept)",
                    local_round,
                    len(kept),
                    len(conversation.model_ids),
                )
                break

        return conversation

    async def _summarize(self, conversation: Conversation) -> Conversation:
        summarizer = conversation.model_ids[0]
        rounds = episode_rounds(conversation)
        question = (rounds[0].user_question if rounds else None) or ""
        first_question = conversation.rounds[0].user_question if conversation.rounds else None
        if len(rounds) < len(conversation.rounds) and first_question:
            question = self._prompts.followup_summary_question.format(
                original=first_question, question=question
            )
        transcript = summary_transcript(question, rounds, self._prompts)

        logger.info("Running summary via %s over %d rounds", summarizer, len(rounds))
        responses = await self._fan_out("summary", [(summarizer, transcript)])

        conversation = complete(
            conversation,
            responses[0].content,
            summarizer,
            divider=self._prompts.summary_divider,
        )
        self._publish(conversation)
        return conversation

    async def _run_episode(self, conversation: Conversation) -> Conversation:
        conversation = await self._discuss(conversation)
        return await self._summarize(conversation)

    async def start_conversation(self, question: str, model_ids: Sequence[str]) -> Conversation:
        """Ask every selected model, negotiate, and return the completed conversation.

        Raises:
            ValueError: For an empty question or an invalid selection.
            EpisodeFailed: If any model call (or the catalog) fails.
        """
        question = question.strip()
        if not question:
            raise ValueError("Question must not be empty")
        ids = validate_model_ids(model_ids, self._max_models)
        models = await self._resolve_models(ids)

        conversation = new_conversation(question, ids, models, max_rounds=self._max_rounds)

        with self._single_flight(conversation.id):
            logger.info(
                "Conversation %s: asking %d models via %s", conversation.id, len(ids), self._provider.name()
            )
            answers = await self._fan_out(
                "answer",
                [(model_id, initial_transcript(question, self._prompts)) for model_id in ids],
            )
            rnd = Round(round_number=1, user_question=question, responses=tuple(answers))
            conversation = append_round(conversation, rnd, current_round=1)
            self._publish(conversation)

            return await self._run_episode(conversation)

    async def continue_conversation(
        self,
        conversation_id: str,
        question: str,
        conversation: Conversation,
    ) -> Conversation:
        """Run a follow-up episode on a completed conversation.

        On failure the raised EpisodeFailed carries the unchanged input
        conversation, which is also published through on_update.

        Raises:
            ValueError: On an id mismatch, empty question, or a conversation
                that is not complete.
            ConversationBusy: If an episode is already running for the id.
            EpisodeFailed: If any model call fails.
        """
        if conversation.id != conversation_id:
            raise ValueError(f"Conversation id mismatch: {conversation_id} != {conversation.id}")
        if not conversation.is_complete:
            raise ValueError(f"Conversation {conversation_id} is still in progress")
        question = question.strip()
        if not question:
            raise ValueError("Question must not be empty")

        with self._single_flight(conversation_id):
            reopened = begin_follow_up(conversation, question)
            self._publish(reopened)

            first_round = conversation.rounds[0] if conversation.rounds else None
            original_question = (first_round.user_question if first_round else None) or ""
            calls = [
                (
                    model_id,
                    follow_up_transcript(
                        model_id,
                        original_question,
                        first_round,
                        conversation.summary,
                        question,
                        self._prompts,
                    ),
                )
                for model_id in conversation.model_ids
            ]

            try:
                logger.info("Conversation %s: follow-up to %d models", conversation_id, len(calls))
                answers = await self._fan_out("follow-up", calls)
                rnd = Round(
                    round_number=next_round_number(reopened),
                    user_question=question,
                    responses=tuple(answers),
                )
                updated = append_round(reopened, rnd, current_round=1)
                self._publish(updated)
                return await self._run_episode(updated)
            except EpisodeFailed as exc:
                logger.warning("Follow-up on %s failed, rolling back: %s", conversation_id, exc)
                exc.conversation = conversation
                self._publish(conversation)
                raise
