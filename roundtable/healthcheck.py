"""Model health checks — ping each selected model before starting an episode."""

import asyncio
import logging
from collections.abc import Sequence

from roundtable.models import ChatTurn
from roundtable.providers.base import ChatProvider

logger = logging.getLogger(__name__)

_PING_TRANSCRIPT = [ChatTurn("user", "Reply with the word OK only.")]
_TIMEOUT_SEC = 15.0


async def _check_one(provider: ChatProvider, model_id: str) -> tuple[str, bool, str]:
    """Ping a single model. Returns (model_id, ok, error_message)."""
    try:
        await asyncio.wait_for(
            provider.complete(model_id, _PING_TRANSCRIPT),
            timeout=_TIMEOUT_SEC,
        )
        return model_id, True, ""
    except TimeoutError:
        return model_id, False, f"No reply within {_TIMEOUT_SEC:g}s"
    except Exception as exc:
        logger.debug("Health check for %s failed: %s", model_id, exc)
        return model_id, False, str(exc)


async def run_health_checks(
    provider: ChatProvider,
    model_ids: Sequence[str],
) -> dict[str, tuple[bool, str]]:
    """Ping all models in parallel.

    Returns:
        Dict mapping model id -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(provider, m) for m in model_ids))
    return {model_id: (ok, err) for model_id, ok, err in results}
