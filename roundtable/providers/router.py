"""OpenRouter-compatible provider using openai SDK with native async."""

import asyncio
import logging
import os
import time
from collections.abc import Sequence

import openai
from openai import AsyncOpenAI

from config.config_loader import RouterConfig
from roundtable.diagnostics import ErrorReporter, NullReporter
from roundtable.models import ChatTurn
from roundtable.providers.base import ChatProvider, ModelError, ModelTimeout

logger = logging.getLogger(__name__)

_KEYLESS_PLACEHOLDER = "keyless"


class RouterProvider(ChatProvider):
    """Chat completions through the upstream router (POST /chat/completions)."""

    def __init__(
        self,
        config: RouterConfig,
        client: AsyncOpenAI | None = None,
        reporter: ErrorReporter | None = None,
    ) -> None:
        self._config = config
        self._reporter = reporter or NullReporter()
        if client is None:
            # The public router is keyless but the SDK insists on a value.
            api_key = os.environ.get(config.api_key_env, "").strip() or _KEYLESS_PLACEHOLDER
            client = AsyncOpenAI(api_key=api_key, base_url=config.base_url, max_retries=0)
        self._client = client

    def name(self) -> str:
        return "router"

    def _fail(self, model_id: str, exc: Exception) -> None:
        self._reporter.report(
            f"{self._config.base_url}/chat/completions",
            "POST",
            {"model": model_id},
            str(exc),
        )

    async def complete(self, model_id: str, transcript: Sequence[ChatTurn]) -> str:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=model_id,
                    messages=[turn.to_dict() for turn in transcript],
                ),
                timeout=self._config.timeout_sec,
            )
        except (TimeoutError, openai.APITimeoutError) as exc:
            err = ModelTimeout(model_id, self._config.timeout_sec)
            self._fail(model_id, err)
            raise err from exc
        except openai.APIStatusError as exc:
            detail = exc.response.text if exc.response is not None else ""
            err = ModelError(
                model_id,
                f"Upstream returned {exc.status_code}: {detail[:200]}",
                status_code=exc.status_code,
                detail=detail,
            )
            self._fail(model_id, err)
            raise err from exc
        except openai.OpenAIError as exc:
            err = ModelError(model_id, f"API call failed: {exc}")
            self._fail(model_id, err)
            raise err from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            err = ModelError(model_id, "Empty response content")
            self._fail(model_id, err)
            raise err

        logger.info("%s replied in %.2fs (%d chars)", model_id, latency, len(choice.message.content))
        return choice.message.content
