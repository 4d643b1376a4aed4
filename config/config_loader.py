"""Load settings.yaml into typed dataclasses. Applies environment overrides."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

CONSENSUS_POLICIES = ("first_agrees", "all_agree")

BASE_URL_ENV = "ROUNDTABLE_BASE_URL"
TIMEOUT_ENV = "ROUNDTABLE_TIMEOUT_SEC"


@dataclass
class RouterConfig:
    base_url: str
    timeout_sec: float
    api_key_env: str = "ROUNDTABLE_API_KEY"
    models_path: str = "/free/models"
    catalog_cache_sec: float = 10.0


@dataclass
class NegotiationConfig:
    max_rounds: int = 3
    max_models: int = 4
    consensus_policy: str = "first_agrees"
    concurrent: bool = True
    dev_mode: bool = False


@dataclass
class ConsensusConfig:
    agree_keywords: list[str] = field(default_factory=lambda: ["同意", "agree"])
    negation_keywords: list[str] = field(default_factory=lambda: ["不同意", "不赞同", "disagree"])


@dataclass
class PromptsConfig:
    initial_system: str
    discussion_system: str
    discussion_intro: str
    discussion_entry: str
    summary_system: str
    summary: str
    summary_entry: str
    followup_system: str
    followup_summary_note: str
    round_divider: str
    summary_divider: str
    followup_summary_question: str = "{original}\nFollow-up question: {question}"


@dataclass
class AppConfig:
    router: RouterConfig
    negotiation: NegotiationConfig
    consensus: ConsensusConfig
    prompts: PromptsConfig


def _load_router(raw: dict) -> RouterConfig:
    base_url = os.environ.get(BASE_URL_ENV, "").strip() or str(raw["base_url"])
    timeout_raw = os.environ.get(TIMEOUT_ENV, "").strip() or raw["timeout_sec"]
    try:
        timeout_sec = float(timeout_raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid timeout_sec: {timeout_raw!r}") from exc
    if timeout_sec <= 0:
        raise ValueError(f"timeout_sec must be positive, got {timeout_sec}")

    return RouterConfig(
        base_url=base_url.rstrip("/"),
        timeout_sec=timeout_sec,
        api_key_env=str(raw.get("api_key_env", "ROUNDTABLE_API_KEY")),
        models_path=str(raw.get("models_path", "/free/models")),
        catalog_cache_sec=float(raw.get("catalog_cache_sec", 10.0)),
    )


def _load_negotiation(raw: dict) -> NegotiationConfig:
    negotiation = NegotiationConfig(
        max_rounds=int(raw.get("max_rounds", 3)),
        max_models=int(raw.get("max_models", 4)),
        consensus_policy=str(raw.get("consensus_policy", "first_agrees")),
        concurrent=bool(raw.get("concurrent", True)),
        dev_mode=bool(raw.get("dev_mode", False)),
    )
    if negotiation.max_rounds < 1:
        raise ValueError(f"max_rounds must be at least 1, got {negotiation.max_rounds}")
    if negotiation.max_models < 1:
        raise ValueError(f"max_models must be at least 1, got {negotiation.max_models}")
    if negotiation.consensus_policy not in CONSENSUS_POLICIES:
        raise ValueError(
            f"Unknown consensus_policy {negotiation.consensus_policy!r}, "
            f"expected one of {', '.join(CONSENSUS_POLICIES)}"
        )
    return negotiation


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    ROUNDTABLE_BASE_URL and ROUNDTABLE_TIMEOUT_SEC override the router
    section when set.

    Raises:
        FileNotFoundError: If the settings file is missing.
        ValueError: On out-of-range or unknown values.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    router = _load_router(raw["router"])
    negotiation = _load_negotiation(raw.get("negotiation", {}))

    consensus_raw = raw.get("consensus", {})
    consensus = ConsensusConfig()
    if "agree_keywords" in consensus_raw:
        consensus.agree_keywords = [str(k) for k in consensus_raw["agree_keywords"]]
    if "negation_keywords" in consensus_raw:
        consensus.negation_keywords = [str(k) for k in consensus_raw["negation_keywords"]]

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        initial_system=prompts_raw["initial_system"],
        discussion_system=prompts_raw["discussion_system"],
        discussion_intro=prompts_raw["discussion_intro"],
        discussion_entry=prompts_raw["discussion_entry"],
        summary_system=prompts_raw["summary_system"],
        summary=prompts_raw["summary"],
        summary_entry=prompts_raw["summary_entry"],
        followup_system=prompts_raw["followup_system"],
        followup_summary_note=prompts_raw["followup_summary_note"],
        round_divider=prompts_raw["round_divider"],
        summary_divider=prompts_raw["summary_divider"],
        followup_summary_question=prompts_raw.get(
            "followup_summary_question", PromptsConfig.followup_summary_question
        ),
    )

    logger.info(
        "Router %s (timeout %.0fs), max %d rounds, policy %s",
        router.base_url,
        router.timeout_sec,
        negotiation.max_rounds,
        negotiation.consensus_policy,
    )

    return AppConfig(
        router=router,
        negotiation=negotiation,
        consensus=consensus,
        prompts=prompts,
    )
