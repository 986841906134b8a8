"""twitchmod CLI - コマンドラインインターフェース"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from .core.config import (
    build_chat_config,
    build_helix_config,
    build_logging_config,
    load_config,
    setup_logging,
)
from .core.settings import GlobalSettings, normalize_channel
from .core.validation import parse_twitch_user_id, validate_global_settings, validate_oauth_token
from .integrations.helix import REQUIRED_SCOPES, HelixClient, TwitchError, missing_scopes
from .modes.moderator import TwitchModPlugin

app = typer.Typer(
    name="twitchmod",
    help="Twitch Moderator Tools - Stream Deck プラグイン",
    add_completion=False,
)
console = Console()


@app.command()
def plugin(
    port: int = typer.Option(..., "-port", "--port", help="Stream Deck WebSocket ポート"),
    plugin_uuid: str = typer.Option(..., "-pluginUUID", "--plugin-uuid", help="プラグインUUID"),
    register_event: str = typer.Option(..., "-registerEvent", "--register-event", help="登録イベント名"),
    info: Optional[str] = typer.Option(None, "-info", "--info", help="Stream Deck 情報（JSON）"),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="設定ファイルパス（twitchmod.yaml）",
    ),
):
    """Stream Deck からプラグインとして起動"""
    data = load_config(config_path)
    setup_logging(build_logging_config(data))

    mod = TwitchModPlugin(
        helix_config=build_helix_config(data),
        chat_config=build_chat_config(data),
    )
    if not asyncio.run(mod.run(port, plugin_uuid, register_event, info)):
        raise typer.Exit(1)


@app.command()
def validate(
    settings_path: Path = typer.Argument(..., help="認証情報ファイル（YAML / JSON）"),
):
    """認証情報ファイルを検証"""
    if not settings_path.exists():
        console.print(f"[red]Error: File not found: {settings_path}[/red]")
        raise typer.Exit(1)

    with settings_path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        console.print("[red]Error: Settings file must contain a mapping[/red]")
        raise typer.Exit(1)

    form = {key: "" if value is None else str(value) for key, value in data.items()}

    # twitch.tv の URL で入力された ID は数値部分を使う
    for key in ("twitchBroadcasterId", "twitchModeratorId"):
        user_id = parse_twitch_user_id(form.get(key))
        if user_id and user_id != form[key].strip():
            console.print(f"[cyan]{key}: using user ID {user_id}[/cyan]")
            form[key] = user_id
            data[key] = user_id
    errors = validate_global_settings(form)

    token = form.get("twitchToken", "")
    if token and not validate_oauth_token(token):
        console.print("[yellow]Warning: token does not look like an OAuth token[/yellow]")

    if errors:
        for error in errors:
            console.print(f"[red]✗ {error}[/red]")
        raise typer.Exit(1)

    settings = GlobalSettings.from_dict(data)
    console.print(f"[green]✅ Settings are valid (channel: {settings.twitch_channel or '-'})[/green]")


@app.command("check-token")
def check_token(
    token: str = typer.Option(..., "--token", "-t", help="OAuth トークン"),
    client_id: str = typer.Option("", "--client-id", help="Client ID"),
    channel: Optional[str] = typer.Option(None, "--channel", help="配信者IDを調べるチャンネル名"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="設定ファイルパス"),
):
    """トークンを Twitch で検証してスコープを確認"""
    data = load_config(config_path)
    settings = GlobalSettings(twitch_token=token, twitch_client_id=client_id)
    login = normalize_channel(channel)

    async def _check():
        async with HelixClient(settings, build_helix_config(data)) as helix:
            info = await helix.validate_token()
            users = []
            if login:
                # Client-Id 未指定ならトークンの発行元を使う
                settings.twitch_client_id = settings.twitch_client_id or info.client_id
                users = await helix.get_users([login])
            return info, users

    try:
        info, users = asyncio.run(_check())
    except TwitchError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[cyan]Login: {info.login} (user_id: {info.user_id})[/cyan]")
    if login:
        if not users:
            console.print(f"[red]Error: Channel not found: {login}[/red]")
            raise typer.Exit(1)
        console.print(f"[cyan]Broadcaster ID for {users[0].get('login', login)}: {users[0]['id']}[/cyan]")

    table = Table(title="Required scopes")
    table.add_column("Scope")
    table.add_column("Granted")
    for scope in REQUIRED_SCOPES:
        table.add_row(scope, "[green]yes[/green]" if scope in info.scopes else "[red]no[/red]")
    console.print(table)

    if missing_scopes(info):
        raise typer.Exit(1)


@app.command()
def scopes():
    """必要な OAuth スコープを表示"""
    for scope in REQUIRED_SCOPES:
        console.print(scope)


if __name__ == "__main__":
    app()
