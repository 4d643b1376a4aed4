"""Click CLI — loads config, builds the router provider, runs a negotiation."""

import asyncio
import logging
import sys

import click
from dotenv import load_dotenv
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import CONSENSUS_POLICIES, AppConfig, load_config
from roundtable.catalog import CatalogUnavailable, ModelCatalog
from roundtable.diagnostics import build_reporter
from roundtable.healthcheck import run_health_checks
from roundtable.models import Conversation
from roundtable.negotiation import EpisodeFailed, Negotiator
from roundtable.output import console, conversation_to_json, print_conversation, print_models
from roundtable.providers.base import ChatProvider
from roundtable.providers.router import RouterProvider

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _parse_models(models_arg: str | None) -> list[str]:
    if not models_arg:
        return []
    return list(dict.fromkeys(m.strip() for m in models_arg.split(",") if m.strip()))


def _apply_overrides(
    config: AppConfig,
    max_rounds: int | None,
    policy: str | None,
    sequential: bool,
) -> AppConfig:
    """CLI flags win over settings.yaml."""
    if max_rounds is not None:
        if max_rounds < 1:
            raise click.BadParameter("must be at least 1", param_hint="--max-rounds")
        config.negotiation.max_rounds = max_rounds
    if policy is not None:
        config.negotiation.consensus_policy = policy
    if sequential:
        config.negotiation.concurrent = False
    return config


async def _filter_healthy(provider: ChatProvider, model_ids: list[str]) -> list[str]:
    """Ping the selected models, print results, and ask what to do on failures."""
    console.print("\n[bold]Checking models...[/bold]")
    results = await run_health_checks(provider, model_ids)

    failed: list[str] = []
    for model_id in model_ids:
        ok, err = results[model_id]
        if ok:
            console.print(f"  [green]OK  [/green] {model_id}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {model_id}: {escape(short_err)}")
            failed.append(model_id)

    if not failed:
        console.print()
        return model_ids

    working = [m for m in model_ids if m not in failed]
    if not working:
        console.print("\n[bold red]Error:[/bold red] No selected model passed the health check.")
        sys.exit(1)

    console.print(f"\n[yellow]{len(failed)} model(s) failed:[/yellow] {', '.join(failed)}")
    if not click.confirm(f"Continue with {', '.join(working)}?", default=True):
        sys.exit(0)
    console.print()
    return working


async def _list_models(catalog: ModelCatalog) -> None:
    try:
        models = await catalog.fetch_models()
    except CatalogUnavailable as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        sys.exit(1)
    print_models(models)


async def _run(
    config: AppConfig,
    question: str,
    model_ids: list[str],
    follow_ups: tuple[str, ...],
    as_json: bool,
    skip_health_check: bool,
) -> Conversation:
    reporter = build_reporter(config.negotiation.dev_mode)
    provider = RouterProvider(config.router, reporter=reporter)
    catalog = ModelCatalog(config.router, reporter=reporter)

    if not skip_health_check:
        model_ids = await _filter_healthy(provider, model_ids)

    console.print(
        f"\n[bold cyan]Roundtable[/bold cyan] — {len(model_ids)} models, "
        f"up to {config.negotiation.max_rounds} rounds [{config.negotiation.consensus_policy}]"
    )
    console.print(f"Panel: {', '.join(model_ids)}")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        seen_rounds = 0

        def on_update(conversation: Conversation) -> None:
            nonlocal seen_rounds
            if len(conversation.rounds) > seen_rounds:
                rnd = conversation.rounds[-1]
                progress.print(
                    f"[green]OK[/green] Round {rnd.round_number} complete ({len(rnd.responses)} responses)"
                )
            seen_rounds = len(conversation.rounds)

        negotiator = Negotiator.from_config(config, provider, catalog=catalog, on_update=on_update)

        task = progress.add_task("Negotiating...", total=None)
        try:
            conversation = await negotiator.start_conversation(question, model_ids)
        except EpisodeFailed as exc:
            progress.stop()
            console.print(f"[bold red]Conversation failed[/bold red] ({exc.stage}): {escape(str(exc))}")
            sys.exit(1)

        for follow_up in follow_ups:
            progress.update(task, description=f"Follow-up: {follow_up[:40]}")
            try:
                conversation = await negotiator.continue_conversation(conversation.id, follow_up, conversation)
            except EpisodeFailed as exc:
                console.print(f"[bold red]Follow-up failed[/bold red] ({exc.stage}): {escape(str(exc))}")
                console.print("[yellow]Showing the last complete conversation.[/yellow]")
                conversation = exc.conversation or conversation
                break

    if as_json:
        click.echo(conversation_to_json(conversation))
    else:
        print_conversation(conversation)
    return conversation


@click.command()
@click.argument("question", required=False)
@click.option("--models", default=None, help="Comma-separated model ids (1-4), e.g. a/b,c/d")
@click.option("--follow-up", "follow_ups", multiple=True, help="Follow-up question; repeat for several")
@click.option("--list-models", is_flag=True, help="Print the router's free models and exit")
@click.option("--max-rounds", default=None, type=int, help="Rounds per question (default: from config)")
@click.option("--policy", default=None, type=click.Choice(CONSENSUS_POLICIES),
              help="Consensus policy (default: from config)")
@click.option("--sequential", is_flag=True, help="Call models one at a time instead of in parallel")
@click.option("--json", "as_json", is_flag=True, help="Print the conversation as JSON")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip pinging the selected models at startup")
def main(
    question: str | None,
    models: str | None,
    follow_ups: tuple[str, ...],
    list_models: bool,
    max_rounds: int | None,
    policy: str | None,
    sequential: bool,
    as_json: bool,
    verbose: bool,
    skip_health_check: bool,
) -> None:
    """Roundtable -- ask several models, let them debate, get one answer.

    \b
    Examples:
      roundtable --list-models
      roundtable "What is 2+2?" --models meta-llama/llama-3-8b-instruct,google/gemma-2-9b-it
      roundtable "Tabs or spaces?" --models a/x,b/y --follow-up "And in YAML?"
      roundtable "Is P=NP?" --models a/x,b/y --policy all_agree --max-rounds 2
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    config = _apply_overrides(config, max_rounds, policy, sequential)

    if list_models:
        catalog = ModelCatalog(config.router, reporter=build_reporter(config.negotiation.dev_mode))
        asyncio.run(_list_models(catalog))
        return

    if not question:
        console.print("[bold red]Error:[/bold red] Provide a QUESTION argument or --list-models.")
        sys.exit(1)

    model_ids = _parse_models(models)
    if not model_ids:
        console.print("[bold red]Error:[/bold red] Select models with --models (see --list-models).")
        sys.exit(1)
    if len(model_ids) > config.negotiation.max_models:
        console.print(
            f"[bold red]Error:[/bold red] At most {config.negotiation.max_models} models, "
            f"got {len(model_ids)}."
        )
        sys.exit(1)

    asyncio.run(
        _run(
            config=config,
            question=question,
            model_ids=model_ids,
            follow_ups=follow_ups,
            as_json=as_json,
            skip_health_check=skip_health_check,
        )
    )


if __name__ == "__main__":
    main()
