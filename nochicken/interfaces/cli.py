from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from ..core.assistant import AssistantSystem
from ..core.config import Config
from ..core.exceptions import NoChickenError, AIError
from ..session.manager import ConversationContextManager


app = typer.Typer(help="NoChickenLeftBehind assistant conversation tools.",
                  add_completion=False, no_args_is_help=True)
console = Console()


def setup_logging(config: Config, debug: bool = False) -> None:
    """Configure the root logger from the logging config section"""
    level_name = "DEBUG" if debug else str(config.logging.get('level', 'INFO')).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=config.logging.get('format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
        datefmt='%H:%M:%S'
    )

    # HTTP client chatter only matters when debugging
    if not debug:
        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('requests').setLevel(logging.WARNING)


def _load_transcript(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise NoChickenError(f"Cannot read transcript {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise NoChickenError("Transcript must be a mapping with a 'turns' list")
    if not isinstance(data.get("turns") or [], list):
        raise NoChickenError("Transcript 'turns' must be a list")
    for section in ("preferences", "state"):
        value = data.get(section) or {}
        if not isinstance(value, dict):
            raise NoChickenError(f"Transcript '{section}' must be a mapping")
        if not all(isinstance(key, str) for key in value):
            raise NoChickenError(f"Transcript '{section}' keys must be strings")
    return data


def _render_context(manager: ConversationContextManager, user: str) -> None:
    console.rule(f"Context for {user}")
    console.print(manager.generate_context_prompt(user), markup=False, highlight=False,
                  soft_wrap=True)

    context = manager.get_context(user)
    table = Table(title="Session", show_lines=True)
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Turns", str(len(context.current_session.turns)))
    table.add_row("Topics", ", ".join(context.current_session.topics) or "-")
    table.add_row("Recent items", ", ".join(context.history.recent_items) or "-")
    console.print(table)

    console.rule("Suggestions")
    for suggestion in manager.suggest_next_actions(user):
        console.print(f"• {suggestion}", markup=False, highlight=False)


@app.callback()
def main() -> None:
    """Conversation context tools."""


@app.command()
def replay(
    transcript: Path = typer.Argument(..., help="YAML transcript with preferences, state and turns"),
    user: Optional[str] = typer.Option(None, "--user", help="User id (defaults to the transcript's)"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to a YAML config"),
) -> None:
    """Replay a transcript offline and show the resulting context."""
    try:
        config = Config(config_path)
        data = _load_transcript(transcript)
        user_id = user or str(data.get("user", "demo"))

        manager = ConversationContextManager(config.session_config)
        for key, value in (data.get("preferences") or {}).items():
            manager.set_user_preference(user_id, key, value)
        for turn in data.get("turns") or []:
            manager.add_turn(user_id, turn)
        if data.get("state"):
            manager.set_state(user_id, **data["state"])
    except NoChickenError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)

    _render_context(manager, user_id)


@app.command()
def chat(
    user: str = typer.Option("cli-user", "--user", help="User id for the conversation"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to a YAML config"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Chat with the assistant; type 'exit' to leave."""
    try:
        config = Config(config_path)
    except NoChickenError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)
    setup_logging(config, debug)

    assistant = AssistantSystem(config)
    if not assistant.llm_client.test_connection():
        console.print("[yellow]Language model service is not reachable; replies may fail.[/yellow]")

    with assistant:
        while True:
            message = typer.prompt("You").strip()
            if message.lower() in ("exit", "quit"):
                break
            if not message:
                continue
            try:
                reply = assistant.respond(user, message)
            except AIError as exc:
                console.print(f"[red]{exc.code.value}:[/red] {exc.message}")
                continue
            console.print(f"[bold]Assistant:[/bold] {reply.text}")
            if reply.suggestions:
                console.print("Try: " + " | ".join(reply.suggestions), markup=False, highlight=False)


if __name__ == "__main__":
    app()
