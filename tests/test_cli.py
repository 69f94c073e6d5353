from typer.testing import CliRunner

from conftest import POOL
from poolstream.presentation.cli import app

runner = CliRunner()


def test_help_lists_commands():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "stream" in result.output
    assert "estimate-block" in result.output


def test_follow_requires_ws_url():
    result = runner.invoke(app, ["stream", POOL, "--rpc-url", "http://rpc.test"], env={"POOLSTREAM_WS_URL": ""})
    assert result.exit_code == 2


def test_invalid_chunk_size_is_a_usage_error():
    result = runner.invoke(app, ["stream", POOL, "--rpc-url", "http://rpc.test", "--no-follow", "--chunk-size", "0"])
    assert result.exit_code == 2
