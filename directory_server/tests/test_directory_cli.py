import json

import pytest
from fastapi.testclient import TestClient
from typer.testing import CliRunner

from connectors.http_term_store import DirectorySession
from directory_server import cli, daemon
from media_directory.settings import DirectorySettings

runner = CliRunner()


@pytest.fixture
def served(store, monkeypatch):
    """Route the CLI's REST calls to the in-process app."""
    daemon.configure(store, DirectorySettings(vocabulary_mapping=["image:media_tree"]))
    monkeypatch.setattr(cli, "_session", lambda url: DirectorySession(url, client=TestClient(daemon.app)))
    return store


def test_help():
    result = runner.invoke(cli.app, ["--help"])
    assert result.exit_code == 0
    assert "Usage" in result.output
    for command in ("start", "stop", "status", "tree", "branch", "submit", "select"):
        assert command in result.output


def test_select_existing_node():
    result = runner.invoke(cli.app, ["select", "1|3", "4", "2024"])
    assert result.exit_code == 0
    assert result.output.strip() == "4"


def test_select_new_node():
    result = runner.invoke(cli.app, ["select", "1|3", "j1_1", "New folder"])
    assert result.exit_code == 0
    assert result.output.strip() == "1|3|New folder"


def test_tree(served):
    result = runner.invoke(cli.app, ["tree", "media_tree", "--selected", "4"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert [(n["id"], n["parent"]) for n in data] == [("1", "#"), ("2", "1"), ("3", "1"), ("4", "3"), ("5", "1")]
    assert [n["id"] for n in data if n["state"]["selected"]] == ["4"]


def test_tree_unknown_vocabulary(served):
    result = runner.invoke(cli.app, ["tree", "nope"])
    assert result.exit_code == 1
    assert "Vocabulary not found" in result.output


def test_branch(served):
    result = runner.invoke(cli.app, ["branch", "4", "1", "3"])
    assert result.exit_code == 0, result.output
    assert result.output.strip() == "1|3|4"


def test_branch_broken(served):
    result = runner.invoke(cli.app, ["branch", "1", "4"])
    assert result.exit_code == 1
    assert "disconnected" in result.output


def test_submit(served):
    result = runner.invoke(cli.app, ["submit", "image", "5|Vacation|Summer"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["chain"] == [5, 6, 7]
    assert [served.terms[tid].name for tid in (6, 7)] == ["Vacation", "Summer"]
    assert len(served.terms) == 7


def test_submit_rejected(served):
    result = runner.invoke(cli.app, ["submit", "image", "Vacation"])
    assert result.exit_code == 1
    assert "Submission rejected" in result.output


def test_unreachable_server():
    result = runner.invoke(cli.app, ["branch", "1", "--url", "http://127.0.0.1:9"])
    assert result.exit_code == 1
    assert "Error contacting server" in result.output


def test_invalid_argument():
    result = runner.invoke(cli.app, ["start", "--port", "notaport"])
    assert result.exit_code != 0
