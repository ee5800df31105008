from typing import Optional

import typer
import uvicorn

from mango_quests.api.schemas.quests import QuestResponse
from mango_quests.cli.client import ApiClient, ApiError


app = typer.Typer(help="Mango Quests CLI")
quest_app = typer.Typer(help="Manage quests")
app.add_typer(quest_app, name="quests")

DEFAULT_BASE_URL = "http://127.0.0.1:8003/api/v1"


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8003, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable autoreload (dev only)"),
):
    """Start the quests API server."""
    uvicorn.run(
        "mango_quests.main:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


def _client(base_url: str, user: str, timezone: Optional[str] = None) -> ApiClient:
    return ApiClient(base_url, user_id=user, timezone=timezone)


def _echo_quest(quest: QuestResponse) -> None:
    typer.echo(f"{quest.id}\t{quest.type}\t{quest.status}\t{quest.xp_reward}xp\t{quest.description}")
    for c in quest.criteria:
        mark = "x" if c.is_met else " "
        typer.echo(f"    [{mark}] {c.current_progress}/{c.target_count} {c.type}: {c.description}")


def _fail(error: ApiError) -> None:
    typer.echo(f"Error ({error.code}): {error.message}", err=True)
    raise typer.Exit(code=1)


@quest_app.command("list")
def quests_list(
    user: str = typer.Option(..., "--user", help="User ID"),
    status: Optional[str] = typer.Option(None, help="Filter by status"),
    quest_type: Optional[str] = typer.Option(None, "--type", help="Filter by type (daily or weekly)"),
    base_url: str = typer.Option(DEFAULT_BASE_URL, help="API base URL"),
):
    """List quests."""
    try:
        quests = _client(base_url, user).list_quests(status=status, quest_type=quest_type)
    except ApiError as e:
        _fail(e)
    for q in quests.items:
        _echo_quest(q)
    typer.echo(f"{quests.total} quest(s)")


@quest_app.command("generate")
def quests_generate(
    quest_type: str = typer.Argument(..., help="daily or weekly"),
    user: str = typer.Option(..., "--user", help="User ID"),
    timezone: str = typer.Option(..., "--tz", help="IANA time zone, e.g. Europe/Madrid"),
    base_url: str = typer.Option(DEFAULT_BASE_URL, help="API base URL"),
):
    """Generate a new batch of quests."""
    try:
        result = _client(base_url, user, timezone).generate(quest_type)
    except ApiError as e:
        _fail(e)
    typer.echo(result.message)
    for q in result.quests:
        _echo_quest(q)


@quest_app.command("activate")
def quests_activate(
    quest_id: str = typer.Argument(..., help="Quest ID"),
    user: str = typer.Option(..., "--user", help="User ID"),
    base_url: str = typer.Option(DEFAULT_BASE_URL, help="API base URL"),
):
    """Activate an available quest."""
    try:
        quest = _client(base_url, user).activate(quest_id)
    except ApiError as e:
        _fail(e)
    _echo_quest(quest)


@quest_app.command("cancel")
def quests_cancel(
    quest_id: str = typer.Argument(..., help="Quest ID"),
    user: str = typer.Option(..., "--user", help="User ID"),
    base_url: str = typer.Option(DEFAULT_BASE_URL, help="API base URL"),
):
    """Cancel an active quest."""
    try:
        quest = _client(base_url, user).cancel(quest_id)
    except ApiError as e:
        _fail(e)
    _echo_quest(quest)


@quest_app.command("claim")
def quests_claim(
    quest_id: str = typer.Argument(..., help="Quest ID"),
    user: str = typer.Option(..., "--user", help="User ID"),
    base_url: str = typer.Option(DEFAULT_BASE_URL, help="API base URL"),
):
    """Claim a completed quest's reward."""
    try:
        result = _client(base_url, user).claim(quest_id)
    except ApiError as e:
        _fail(e)
    _echo_quest(result.quest)
    if result.xp_award:
        award = result.xp_award
        suffix = " (level up!)" if award.level_up else ""
        typer.echo(f"+{award.awarded} XP -> {award.new_xp} XP, level {award.new_level}{suffix}")
    else:
        typer.echo("Quest completed, but the XP award could not be recorded.")


if __name__ == "__main__":
    app()
