"""Abstract base for chat completion providers and their errors."""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from roundtable.models import ChatTurn


class ProviderError(Exception):
    """Raised when a single model call fails."""

    def __init__(self, model_id: str, message: str) -> None:
        self.model_id = model_id
        super().__init__(f"[{model_id}] {message}")


class ModelTimeout(ProviderError):
    """The model did not reply before the per-call deadline."""

    def __init__(self, model_id: str, timeout_sec: float) -> None:
        self.timeout_sec = timeout_sec
        super().__init__(model_id, f"Request timed out after {timeout_sec:g}s")


class ModelError(ProviderError):
    """The upstream answered with an error or an unusable reply."""

    def __init__(
        self,
        model_id: str,
        message: str,
        status_code: int | None = None,
        detail: str = "",
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(model_id, message)


class ChatProvider(ABC):
    """Sends a role-tagged transcript to one model and returns its text."""

    @abstractmethod
    def name(self) -> str:
        """Return a short name for logs (e.g. 'router')."""
        ...

    @abstractmethod
    async def complete(self, model_id: str, transcript: Sequence[ChatTurn]) -> str:
        """Return the model's reply to the transcript.

        Args:
            model_id: Provider-qualified model identifier.
            transcript: Ordered system/user/assistant turns.

        Returns:
            The reply text.

        Raises:
            ModelTimeout: If no reply arrives within the timeout.
            ModelError: On a non-success upstream response.
        """
        ...
