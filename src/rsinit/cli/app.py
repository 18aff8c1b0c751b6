# src/rsinit/cli/app.py
from __future__ import annotations

import shlex
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from rsinit.admin.client import MongoAdminClient
from rsinit.bootstrap.keyfile import DEFAULT_KEYFILE_BYTES, ensure_secret
from rsinit.bootstrap.orchestrator import BootstrapOrchestrator
from rsinit.bootstrap.readiness import Connectivity, observe
from rsinit.bootstrap.supervisor import filter_auth_args
from rsinit.config.loader import load_config
from rsinit.errors import BootstrapError, ConfigError, StorageError
from rsinit.logging.log import init_logging
from rsinit.observers.console import ConsoleObserver
from rsinit.observers.jsonfile import JsonFileObserver
from rsinit.observers.logger import LoggerObserver


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Secure bootstrap for a single-node MongoDB replica set")

PASSTHROUGH = {"allow_extra_args": True, "ignore_unknown_options": True}


def _report(exc: BootstrapError, logger=None) -> None:
    lines = [f"Bootstrap failed in phase '{exc.phase or '-'}': {exc.message}"]
    if exc.__cause__ is not None:
        lines.append(f"  cause: {exc.__cause__!r}")
    for line in lines:
        if logger is not None:
            logger.error(line)
        else:
            typer.echo(line, err=True)


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command(context_settings=PASSTHROUGH)
def run(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file"),
    self_address: Optional[str] = typer.Option(None, "--self-address", help="host:port announced in the replica set"),
    replica_set: Optional[str] = typer.Option(None, "--replica-set", help="Replica set name"),
    keyfile: Optional[str] = typer.Option(None, "--keyfile", help="Replica-set key file path"),
    max_attempts: Optional[int] = typer.Option(None, "--max-attempts", help="Polling attempts per wait"),
    interval: Optional[float] = typer.Option(None, "--interval", help="Seconds between polling attempts"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="DEBUG output on the console"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Directory for the run log"),
    log_file: bool = typer.Option(True, "--log-file/--no-log-file", help="Write a full trace log file"),
    events_file: Optional[Path] = typer.Option(None, "--events-file", help="Append lifecycle events as JSON lines"),
):
    """
    Bootstrap the replica set, then exec the server with --auth.

    Everything after `--` is the server command line, e.g.

        rsinit run -- mongod --replSet rs0 --bind_ip_all --keyFile /data/mongo-keyfile
    """
    overrides: Dict[str, Any] = {
        "self_address": self_address,
        "replica_set_name": replica_set,
        "keyfile_path": keyfile,
        "max_attempts": max_attempts,
        "interval_seconds": interval,
    }

    # Credentials are validated before anything is written or started.
    try:
        cfg = load_config(config, argv=ctx.args, overrides=overrides)
    except ConfigError as exc:
        _report(exc)
        raise typer.Exit(code=1)

    if not cfg.argv:
        typer.echo("No server command line given (expected: rsinit run -- mongod ...)", err=True)
        raise typer.Exit(code=2)

    logger, run_id, _ = init_logging(base_dir=log_dir, verbose=verbose, to_file=log_file)

    observers = [LoggerObserver(logger)]
    if verbose:
        observers.append(ConsoleObserver())
    if events_file:
        observers.append(JsonFileObserver(events_file))

    try:
        BootstrapOrchestrator(cfg, observers=observers, run_id=run_id).run()
    except BootstrapError as exc:
        _report(exc, logger)
        raise typer.Exit(code=1)


@app.command("keyfile")
def keyfile_cmd(
    path: Path = typer.Option(Path("/data/mongo-keyfile"), "--path", help="Key file path"),
    owner: Optional[str] = typer.Option("mongodb", "--owner", help="Owning user (empty to skip chown)"),
    group: Optional[str] = typer.Option("mongodb", "--group", help="Owning group (empty to skip chown)"),
    num_bytes: int = typer.Option(DEFAULT_KEYFILE_BYTES, "--bytes", min=512, max=768, help="Random bytes of key material"),
):
    """Create the replica-set key file if missing and fix its permissions."""
    init_logging(to_file=False)
    try:
        secret = ensure_secret(path, owner=owner or None, group=group or None, num_bytes=num_bytes)
    except StorageError as exc:
        _report(exc)
        raise typer.Exit(code=1)
    typer.echo(f"{'created' if secret.created else 'kept'} {secret.path}")


@app.command()
def status(
    uri: str = typer.Option("mongodb://localhost:27017/", "--uri", help="Admin connection string"),
    timeout_ms: int = typer.Option(2000, "--timeout-ms", help="Server selection timeout"),
):
    """Print the observed connectivity/membership/role of a member."""
    try:
        admin = MongoAdminClient(uri, server_selection_timeout_ms=timeout_ms, connect_timeout_ms=timeout_ms)
    except ConfigError as exc:
        _report(exc)
        raise typer.Exit(code=1)

    with admin:
        state = observe(admin)

    typer.echo(f"connectivity={state.connectivity.value}")
    typer.echo(f"membership={state.membership.value}")
    typer.echo(f"role={state.role.value}")
    if state.connectivity is Connectivity.UNREACHABLE:
        raise typer.Exit(code=1)


@app.command("filter-args", context_settings=PASSTHROUGH)
def filter_args_cmd(ctx: typer.Context):
    """Print the server command line used for the unsecured start."""
    typer.echo(" ".join(shlex.quote(a) for a in filter_auth_args(ctx.args)))


if __name__ == "__main__":
    app()
