"""
This file is the entry point for the 'media-directory' command-line tool.

Daemon management (start/stop/status) finds the daemon process with psutil,
no PID file needed. The remaining commands talk to a running daemon over
REST, except `select`, which only computes a field value locally.
"""
import json
import logging
import os
import signal
import subprocess
import sys
import time
import uuid
from pathlib import Path
from typing import List, Optional

import httpx
import psutil
import typer

from common.app_setup import monkeypatch_print, print_error, setup_logging
from connectors.http_term_store import DirectorySession, HttpTermStore, error_detail
from media_directory.errors import DirectoryError
from media_directory.selection import apply_selection
from media_directory.tree import resolve_branch, serialize_tree, tree_data

DAEMON_MODULE = "directory_server.daemon"
DEFAULT_URL = "http://127.0.0.1:8000"

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False, help="Manage the media directory daemon and work with directory trees.")


@app.callback()
def main(logfile: Optional[Path] = typer.Option(None, envvar="MEDIA_DIRECTORY_LOGFILE", help="Log file (default ~/.media_directory/log.txt)")):
    setup_logging(logfile=str(logfile) if logfile else None)
    monkeypatch_print()


def _session(url: str) -> DirectorySession:
    return DirectorySession(url)


def _fail(message: str) -> None:
    print_error(message)
    raise typer.Exit(1)


def _emit(result: dict) -> None:
    """Machine readable output goes through typer.echo so rich never wraps it."""
    typer.echo(json.dumps(result))
    logger.info(json.dumps(result))


# ---------------------------------------------------------------------- daemon

def _start_daemon(port: int | None, fixture: Path | None, settings_file: Path | None) -> tuple[int, int | None]:
    """Start the daemon in the background. Returns (pid, port)."""
    cmd = [sys.executable, "-m", DAEMON_MODULE, "--port", str(port or 0)]
    if fixture:
        cmd += ["--fixture", str(fixture)]
    if settings_file:
        cmd += ["--settings", str(settings_file)]
    proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.DEVNULL, text=True, close_fds=True)
    selected_port = None
    assert proc.stdout is not None
    for _ in range(10):
        line = proc.stdout.readline()
        if not line:
            break
        try:
            msg = json.loads(line)
        except json.JSONDecodeError:
            continue
        if msg.get("event") in ("port_selected", "port_used"):
            selected_port = int(msg["port"])
            break
    time.sleep(0.5)
    if proc.poll() is not None:
        _fail(f"Failed to start daemon. Process exited with code {proc.returncode}.")
    return proc.pid, selected_port or port


def _find_daemon_pid() -> int:
    for proc in psutil.process_iter(['pid', 'cmdline']):
        try:
            if proc.info['cmdline'] and DAEMON_MODULE in ' '.join(proc.info['cmdline']):
                return proc.pid
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    raise psutil.NoSuchProcess(0, msg="Daemon not running.")


def _get_listening_port_of_pid(pid: int) -> int | None:
    try:
        for c in psutil.Process(pid).net_connections(kind='inet'):
            if c.status == psutil.CONN_LISTEN:
                return c.laddr.port
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        pass
    return None


def _pid_running(pid: int) -> bool:
    try:
        os.kill(pid, 0)
        return True
    except OSError:
        return False


@app.command()
def serve(
    port: int = typer.Option(None, help="Port to run the server on (auto if not set)"),
    fixture: Path = typer.Option(None, help="YAML/JSON file used to seed the term store"),
    settings_file: Path = typer.Option(None, "--settings", help="YAML settings file"),
):
    """Run the daemon in the foreground."""
    from directory_server.daemon import run

    run(port=port, fixture=fixture, settings_file=settings_file)


@app.command()
def start(
    port: int | None = typer.Option(None, help="Port to start the daemon on (auto if not set)"),
    fixture: Path = typer.Option(None, help="YAML/JSON file used to seed the term store"),
    settings_file: Path = typer.Option(None, "--settings", help="YAML settings file"),
):
    """Start the daemon as a background process. Prints json in any case."""
    try:
        daemon_pid = _find_daemon_pid()
        result = {"returncode": 1, "msg": "A media directory daemon is already running",
                  "pid": daemon_pid, "port": _get_listening_port_of_pid(daemon_pid) or "unknown"}
    except psutil.NoSuchProcess:
        pid, used_port = _start_daemon(port, fixture, settings_file)
        result = {"returncode": 0, "msg": "Started daemon", "pid": pid, "port": used_port}
    _emit(result)
    raise typer.Exit(result["returncode"])


@app.command()
def stop():
    """Stop the daemon, through /shutdown first and SIGTERM if it does not exit."""
    try:
        pid = _find_daemon_pid()
    except psutil.NoSuchProcess:
        _emit({"returncode": 1, "msg": "Daemon not running."})
        raise typer.Exit(1)
    port = _get_listening_port_of_pid(pid)
    if port:
        try:
            httpx.post(f"http://127.0.0.1:{port}/shutdown", timeout=2)
        except httpx.HTTPError as e:
            print_error(f"Graceful shutdown failed: {e}")
    time.sleep(2)
    if not _pid_running(pid):
        _emit({"returncode": 0, "msg": f"Stopped daemon (PID {pid}) via /shutdown"})
        return
    os.kill(pid, signal.SIGTERM)
    time.sleep(1)
    if not _pid_running(pid):
        _emit({"returncode": 0, "msg": f"Stopped daemon (PID {pid}) via SIGTERM"})
        return
    _emit({"returncode": 1, "msg": f"Failed to stop daemon (PID {pid})"})
    raise typer.Exit(1)


@app.command()
def status():
    """Show whether the daemon runs, and its REST status."""
    result = {"returncode": 1, "msg": "Daemon not running.", "running": False, "pid": None, "port": None, "api_status": None}
    try:
        pid = _find_daemon_pid()
    except psutil.NoSuchProcess:
        _emit(result)
        return
    port = _get_listening_port_of_pid(pid)
    result.update(pid=pid, port=port or "unknown")
    try:
        resp = httpx.get(f"http://127.0.0.1:{port}/status", timeout=2)
        resp.raise_for_status()
        result.update(api_status=resp.json(), msg=f"Daemon running with PID {pid}", running=True, returncode=0)
    except httpx.HTTPError as e:
        result.update(api_status={"error": str(e)}, msg=f"Daemon running with PID {pid}, but REST API error")
    _emit(result)


# ------------------------------------------------------------------- directory

@app.command()
def tree(
    vid: str = typer.Argument(..., help="Vocabulary to render"),
    selected: Optional[str] = typer.Option(None, help="Term id to mark as selected"),
    url: str = typer.Option(DEFAULT_URL, envvar="MEDIA_DIRECTORY_URL", help="Daemon base URL"),
):
    """Print the tree widget data of a vocabulary as JSON."""
    try:
        with _session(url) as session:
            listing = HttpTermStore(session).tree_listing(vid)
            typer.echo(json.dumps(tree_data(serialize_tree(listing, selected)), indent=2))
    except DirectoryError as e:
        _fail(e.message)
    except httpx.HTTPError as e:
        _fail(f"Error contacting server at {url}: {e}")


@app.command()
def branch(
    tids: List[int] = typer.Argument(..., help="Term ids of one branch, in any order"),
    url: str = typer.Option(DEFAULT_URL, envvar="MEDIA_DIRECTORY_URL", help="Daemon base URL"),
):
    """Print the given terms ordered from the root, joined with '|'."""
    try:
        with _session(url) as session:
            ordered = resolve_branch(HttpTermStore(session), tids)
    except DirectoryError as e:
        _fail(e.message)
    except httpx.HTTPError as e:
        _fail(f"Error contacting server at {url}: {e}")
    typer.echo("|".join(str(tid) for tid in ordered))


@app.command()
def submit(
    media_type: str = typer.Argument(..., help="Media type of the item"),
    value: str = typer.Argument(..., help="Directory value, e.g. '5|Vacation|Summer'"),
    url: str = typer.Option(DEFAULT_URL, envvar="MEDIA_DIRECTORY_URL", help="Daemon base URL"),
):
    """Run a full validate + submit cycle for a directory value and print the stored chain."""
    submission_id = str(uuid.uuid4())
    chain = None
    try:
        with _session(url) as session:
            for phase in ("validate", "submit"):
                r = session.request("POST", f"/media/{media_type}/submissions/{submission_id}",
                                    json={"value": value, "phase": phase})
                chain = r.json()["chain"]
    except httpx.HTTPStatusError as e:
        _fail(f"Submission rejected: {error_detail(e)}")
    except httpx.HTTPError as e:
        _fail(f"Error contacting server at {url}: {e}")
    _emit({"submission_id": submission_id, "chain": chain})


@app.command()
def select(
    current: str = typer.Argument(..., help="Current field value"),
    node_id: str = typer.Argument(..., help="Id of the selected tree node"),
    node_text: str = typer.Argument("", help="Text of the selected tree node"),
):
    """Print the field value after selecting a node, as the browser widget would."""
    typer.echo(apply_selection(current, node_id, node_text))


if __name__ == "__main__":
    app()
