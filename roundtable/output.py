"""Rich console output for conversations and the model catalog."""

import json
import logging
from dataclasses import asdict

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from roundtable.models import Conversation, Model, ModelResponse, Round

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _response_preview(response: ModelResponse, words: int = 50) -> str:
    """Return first N words of a response."""
    all_words = response.content.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _model_label(conversation: Conversation, model_id: str) -> str:
    model = next((m for m in conversation.models if m.id == model_id), None)
    return f"{model.name} ({model_id})" if model else model_id


def _round_title(rnd: Round) -> str:
    if rnd.user_question is not None:
        return f"Round {rnd.round_number}: Answers"
    return f"Round {rnd.round_number}: Discussion"


def print_round(conversation: Conversation, rnd: Round) -> None:
    """Print a brief summary of one round's responses to the console."""
    console.print(Rule(f"[bold cyan]{_round_title(rnd)}[/bold cyan]"))
    if rnd.user_question is not None:
        console.print(Text(f"Q: {rnd.user_question}", style="italic"))
    for resp in rnd.responses:
        best = " [green]best[/green]" if rnd.best_response_id == resp.model_id else ""
        console.print(
            Panel(
                Text(_response_preview(resp)),
                title=f"[bold]{_model_label(conversation, resp.model_id)}[/bold]{best}",
                border_style="dim",
            )
        )


def print_summary(conversation: Conversation) -> None:
    """Print the final summary using Rich markdown."""
    console.print(Rule("[bold green]Final Summary[/bold green]"))
    summarizer = conversation.model_ids[0] if conversation.model_ids else "unknown"
    console.print(
        Text(
            f"Summarized by: {summarizer} | "
            f"Rounds: {len(conversation.rounds)} | "
            f"Complete: {'yes' if conversation.is_complete else 'no'}",
            style="dim",
        )
    )
    console.print(Markdown(conversation.summary or "_No summary._"))


def print_conversation(conversation: Conversation) -> None:
    for rnd in conversation.rounds:
        print_round(conversation, rnd)
    print_summary(conversation)


def print_models(models: list[Model]) -> None:
    table = Table(title=f"Available models ({len(models)})")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Free", justify="center")
    for model in models:
        table.add_row(model.id, model.name, "yes" if model.is_free else "no")
    console.print(table)


def conversation_to_json(conversation: Conversation) -> str:
    return json.dumps(asdict(conversation), ensure_ascii=False, indent=2)
