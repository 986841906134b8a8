"""Tests for twitchmod CLI."""

from unittest.mock import AsyncMock, MagicMock, patch

from typer.testing import CliRunner

from twitchmod.cli import app
from twitchmod.integrations.helix import REQUIRED_SCOPES, HelixClient, TokenInfo, TwitchAuthError

runner = CliRunner()

VALID_SETTINGS = """\
twitchChannel: "@Ninja"
twitchToken: oauth:abcdefghijklmnopqrstu
twitchBroadcasterId: "123456"
twitchModeratorId: 654321
twitchClientId: cid
"""


def test_scopes():
    """scopes lists every required scope."""
    result = runner.invoke(app, ["scopes"])
    assert result.exit_code == 0
    for scope in REQUIRED_SCOPES:
        assert scope in result.output


def test_validate_valid(tmp_path):
    """validate accepts a complete settings file."""
    path = tmp_path / "settings.yaml"
    path.write_text(VALID_SETTINGS, encoding="utf-8")

    result = runner.invoke(app, ["validate", str(path)])
    assert result.exit_code == 0
    assert "Settings are valid" in result.output
    assert "Ninja" in result.output


def test_validate_user_id_from_url(tmp_path):
    """validate takes the numeric ID from a twitch.tv URL."""
    path = tmp_path / "settings.yaml"
    path.write_text(
        VALID_SETTINGS.replace('"123456"', "https://www.twitch.tv/user/123456"),
        encoding="utf-8",
    )

    result = runner.invoke(app, ["validate", str(path)])
    assert result.exit_code == 0
    assert "using user ID 123456" in result.output


def test_validate_errors(tmp_path):
    """validate reports every invalid field."""
    path = tmp_path / "settings.yaml"
    path.write_text('twitchChannel: ab\ntwitchToken: ""\ntwitchBroadcasterId: 123abc\n', encoding="utf-8")

    result = runner.invoke(app, ["validate", str(path)])
    assert result.exit_code == 1
    assert "Invalid Twitch channel name" in result.output
    assert "OAuth token is required" in result.output
    assert "Broadcaster ID must be numeric" in result.output


def test_validate_token_warning(tmp_path):
    """validate warns about tokens that do not look like OAuth tokens."""
    path = tmp_path / "settings.json"
    path.write_text('{"twitchToken": "short"}', encoding="utf-8")

    result = runner.invoke(app, ["validate", str(path)])
    assert result.exit_code == 0
    assert "Warning" in result.output


def test_validate_not_mapping(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    result = runner.invoke(app, ["validate", str(path)])
    assert result.exit_code == 1


def test_validate_missing_file():
    """validate fails on missing file."""
    result = runner.invoke(app, ["validate", "/tmp/no_such_settings.yaml"])
    assert result.exit_code == 1
    assert "File not found" in result.output


def test_plugin_launch_args():
    """plugin accepts the Stream Deck launch arguments."""
    mod = MagicMock()
    mod.run = AsyncMock(return_value=True)

    with patch("twitchmod.cli.TwitchModPlugin", return_value=mod), \
            patch("twitchmod.cli.setup_logging"):
        result = runner.invoke(app, [
            "plugin",
            "-port", "28196",
            "-pluginUUID", "PLUGIN-UUID",
            "-registerEvent", "registerPlugin",
            "-info", '{"application": {"version": "6.0"}}',
        ])

    assert result.exit_code == 0
    mod.run.assert_awaited_once_with(
        28196, "PLUGIN-UUID", "registerPlugin", '{"application": {"version": "6.0"}}'
    )


def test_plugin_connect_failure():
    mod = MagicMock()
    mod.run = AsyncMock(return_value=False)

    with patch("twitchmod.cli.TwitchModPlugin", return_value=mod), \
            patch("twitchmod.cli.setup_logging"):
        result = runner.invoke(app, [
            "plugin", "--port", "1", "--plugin-uuid", "U", "--register-event", "registerPlugin",
        ])

    assert result.exit_code == 1


def test_plugin_loads_default_config():
    """plugin reads the default config file when --config is omitted."""
    mod = MagicMock()
    mod.run = AsyncMock(return_value=True)

    with patch("twitchmod.cli.TwitchModPlugin", return_value=mod), \
            patch("twitchmod.cli.setup_logging"), \
            patch("twitchmod.cli.load_config", return_value={}) as load_config:
        result = runner.invoke(app, [
            "plugin", "--port", "1", "--plugin-uuid", "U", "--register-event", "registerPlugin",
        ])

    assert result.exit_code == 0
    load_config.assert_called_once_with(None)


def test_check_token():
    info = TokenInfo(login="streamer", user_id="100", client_id="cid", scopes=list(REQUIRED_SCOPES))
    with patch.object(HelixClient, "validate_token", new=AsyncMock(return_value=info)):
        result = runner.invoke(app, ["check-token", "--token", "oauth:secret"])

    assert result.exit_code == 0
    assert "Login: streamer" in result.output


def test_check_token_missing_scopes():
    info = TokenInfo(login="streamer", user_id="100", client_id="cid", scopes=["chat:read"])
    with patch.object(HelixClient, "validate_token", new=AsyncMock(return_value=info)):
        result = runner.invoke(app, ["check-token", "--token", "oauth:secret"])

    assert result.exit_code == 1


def test_check_token_invalid():
    with patch.object(HelixClient, "validate_token", new=AsyncMock(side_effect=TwitchAuthError("invalid access token"))):
        result = runner.invoke(app, ["check-token", "-t", "bad"])

    assert result.exit_code == 1
    assert "invalid access token" in result.output


def test_check_token_channel_lookup():
    info = TokenInfo(login="mod", user_id="200", client_id="cid", scopes=list(REQUIRED_SCOPES))
    get_users = AsyncMock(return_value=[{"id": "19571641", "login": "ninja"}])
    with patch.object(HelixClient, "validate_token", new=AsyncMock(return_value=info)), \
            patch.object(HelixClient, "get_users", new=get_users):
        result = runner.invoke(app, ["check-token", "--token", "oauth:secret", "--channel", "@Ninja"])

    assert result.exit_code == 0
    assert "Broadcaster ID for ninja: 19571641" in result.output
    get_users.assert_awaited_once_with(["Ninja"])


def test_check_token_channel_not_found():
    info = TokenInfo(login="mod", user_id="200", client_id="cid", scopes=list(REQUIRED_SCOPES))
    with patch.object(HelixClient, "validate_token", new=AsyncMock(return_value=info)), \
            patch.object(HelixClient, "get_users", new=AsyncMock(return_value=[])):
        result = runner.invoke(app, ["check-token", "-t", "oauth:secret", "--channel", "nobody_here"])

    assert result.exit_code == 1
    assert "Channel not found" in result.output
