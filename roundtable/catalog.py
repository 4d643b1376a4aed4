"""Model catalog: fetch the router's free model list and normalize it."""

import logging
import re
import time
from typing import Any

import httpx

from config.config_loader import RouterConfig
from roundtable.diagnostics import ErrorReporter, NullReporter
from roundtable.models import Model

logger = logging.getLogger(__name__)

_FREE_SUFFIX = re.compile(r":free$")
_NUMBER_THEN_LETTER = re.compile(r"(\d+(\.\d+)?)([a-z])")


class CatalogUnavailable(Exception):
    """Raised when the model list cannot be fetched or is empty."""


def _extract_ids(payload: Any) -> list[str]:
    """Pull model ids out of any of the accepted response shapes."""
    if isinstance(payload, list):
        entries = payload
    elif isinstance(payload, dict):
        if isinstance(payload.get("free_models"), list):
            entries = payload["free_models"]
        elif isinstance(payload.get("data"), list):
            entries = payload["data"]
        else:
            entries = next((v for v in payload.values() if isinstance(v, list)), [])
    else:
        entries = []

    ids: list[str] = []
    for entry in entries:
        if isinstance(entry, str):
            ids.append(entry)
        elif isinstance(entry, dict) and isinstance(entry.get("id"), str):
            ids.append(entry["id"])
    return ids


def display_name(model_id: str) -> str:
    """Human-readable name: 'meta-llama/llama-3.1-8b-instruct' -> 'Llama 3.1 8 B Instruct'."""
    parts = model_id.split("/")
    if len(parts) > 1:
        raw = _NUMBER_THEN_LETTER.sub(r"\1 \3", parts[1].replace("-", " "))
    else:
        raw = model_id
    return " ".join(word[:1].upper() + word[1:] for word in raw.split(" "))


def normalize_model(raw_id: str) -> Model:
    clean_id = _FREE_SUFFIX.sub("", raw_id)
    name = display_name(clean_id)
    provider = clean_id.split("/")[0] if "/" in clean_id else "unknown provider"
    return Model(
        id=clean_id,
        name=name,
        description=f"{provider} {name} model",
        is_free=True,
    )


def parse_models(payload: Any) -> list[Model]:
    """Normalize a catalog payload. Raises CatalogUnavailable when it holds no ids."""
    ids = _extract_ids(payload)
    if not ids:
        raise CatalogUnavailable("No models found in catalog response")

    models: list[Model] = []
    seen: set[str] = set()
    for raw_id in ids:
        model = normalize_model(raw_id)
        if model.id in seen:
            continue
        seen.add(model.id)
        models.append(model)
    return models


class ModelCatalog:
    """Fetches the model list from the router, cached for a short interval."""

    def __init__(
        self,
        config: RouterConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        reporter: ErrorReporter | None = None,
        clock=time.monotonic,
    ) -> None:
        self._config = config
        self._transport = transport
        self._reporter = reporter or NullReporter()
        self._clock = clock
        self._cached: list[Model] | None = None
        self._fetched_at = 0.0

    @property
    def url(self) -> str:
        return f"{self._config.base_url}{self._config.models_path}"

    def invalidate(self) -> None:
        self._cached = None

    async def fetch_models(self) -> list[Model]:
        """Return the normalized model list, served from cache when fresh.

        Raises:
            CatalogUnavailable: If the router is unreachable, answers with an
                error, or returns no parseable model list.
        """
        now = self._clock()
        if self._cached is not None and now - self._fetched_at < self._config.catalog_cache_sec:
            return list(self._cached)

        logger.info("Fetching model list from %s", self.url)
        try:
            async with httpx.AsyncClient(
                timeout=self._config.timeout_sec,
                transport=self._transport,
            ) as client:
                response = await client.get(self.url)
                response.raise_for_status()
                payload = response.json()
            models = parse_models(payload)
        except (httpx.HTTPError, ValueError, CatalogUnavailable) as exc:
            self._reporter.report(self.url, "GET", None, str(exc))
            logger.warning("Model catalog unavailable: %s", exc)
            raise CatalogUnavailable(f"Cannot fetch model list from {self.url}: {exc}") from exc

        logger.info("Catalog returned %d models", len(models))
        self._cached = models
        self._fetched_at = now
        return list(models)
