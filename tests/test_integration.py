"""Integration tests — real calls to the router, no mocks.

Set ROUNDTABLE_INTEGRATION=1 (and optionally ROUNDTABLE_BASE_URL) to run.
"""

import os

import pytest
from dotenv import load_dotenv

load_dotenv()

pytestmark = pytest.mark.integration

if os.environ.get("ROUNDTABLE_INTEGRATION", "").strip() != "1":
    pytestmark = pytest.mark.skip(reason="Set ROUNDTABLE_INTEGRATION=1 to call the real router")


async def test_full_conversation_against_router():
    from config.config_loader import load_config
    from roundtable.catalog import ModelCatalog
    from roundtable.negotiation import Negotiator
    from roundtable.providers.router import RouterProvider
    from roundtable.state import summary_count

    config = load_config()
    catalog = ModelCatalog(config.router)
    models = await catalog.fetch_models()
    assert models, "Router returned no models"

    model_ids = [m.id for m in models[:2]]
    config.negotiation.max_rounds = 2
    negotiator = Negotiator.from_config(config, RouterProvider(config.router), catalog=catalog)

    conversation = await negotiator.start_conversation("What is 2+2? Answer in one sentence.", model_ids)

    assert conversation.is_complete
    assert summary_count(conversation) == 1
    assert [r.model_id for r in conversation.rounds[0].responses] == model_ids
    assert len(conversation.rounds) <= 2
