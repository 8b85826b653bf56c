"""CLI entrypoint for emitting and consuming tunnel notice streams."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich import print

from tunnel_notices import __version__
from tunnel_notices.config import settings
from tunnel_notices.console import new_console_rewriter
from tunnel_notices.emitter import NoticeEmitter, get_default_emitter, open_notice_output, set_notice_output
from tunnel_notices.models import payload_model
from tunnel_notices.receiver import NoticeReceiver, pump
from tunnel_notices.telemetry import configure_logging
from tunnel_notices.tunnels import TunnelStateMonitor, TunnelTransition

app = typer.Typer(help="Tunnel notice stream tools")


@app.callback()
def main(ctx: typer.Context) -> None:
    """Configure logging before running a command."""
    if not settings.forward_logs:
        configure_logging(settings.log_level)
        return

    sink = open_notice_output(settings.notice_output)
    set_notice_output(sink)
    configure_logging(settings.log_level, forward_to=get_default_emitter())
    if sink not in (sys.stdout, sys.stderr):

        def _release() -> None:
            configure_logging(settings.log_level)
            set_notice_output(sys.stderr)
            sink.close()

        ctx.call_on_close(_release)


def _parse_fields(pairs: list[str]) -> dict[str, str]:
    fields: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise typer.BadParameter(f"Expected name=value, got {pair!r}", param_hint="FIELDS")
        fields[name] = value
    return fields


def _pump_input(input_path: Path | None, receiver: NoticeReceiver) -> int:
    if input_path is None:
        return pump(typer.get_binary_stream("stdin"), receiver, chunk_size=settings.read_chunk_size)
    with input_path.open("rb") as stream:
        return pump(stream, receiver, chunk_size=settings.read_chunk_size)


@app.command()
def start() -> None:
    """Show runtime configuration."""
    print(
        {
            "app_name": settings.app_name,
            "version": __version__,
            "notice_output": settings.notice_output,
            "log_level": settings.log_level,
            "forward_logs": settings.forward_logs,
        }
    )


@app.command()
def emit(
    kind: str = typer.Argument(..., help="Notice type, e.g. Tunnels"),
    fields: Optional[List[str]] = typer.Argument(None, help="Payload fields as name=value, e.g. count=1"),
    show_user: Optional[bool] = typer.Option(None, "--show-user/--hide-user", help="Override the kind's visibility"),
    output: str = typer.Option(None, help="stderr, stdout or a file path (defaults to TUNNEL_NOTICES_NOTICE_OUTPUT)"),
) -> None:
    """Emit a single notice after validating its payload."""
    try:
        model = payload_model(kind)
    except KeyError as exc:
        raise typer.BadParameter(str(exc.args[0]), param_hint="KIND") from exc

    try:
        payload = model.model_validate(_parse_fields(fields or []))
    except ValidationError as exc:
        problems = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in exc.errors())
        raise typer.BadParameter(f"Invalid {kind} payload ({problems})", param_hint="FIELDS") from exc

    if output is None and settings.forward_logs:
        get_default_emitter().publish(payload, show_user=show_user)
        return

    sink = open_notice_output(output or settings.notice_output)
    try:
        NoticeEmitter(sink).publish(payload, show_user=show_user)
    finally:
        if sink not in (sys.stdout, sys.stderr):
            sink.close()


@app.command()
def rewrite(
    input_path: Optional[Path] = typer.Option(None, "--input", help="Notice stream file (defaults to stdin)"),
) -> None:
    """Print a notice stream as 'timestamp kind data' lines."""
    _pump_input(input_path, new_console_rewriter(sys.stdout))


@app.command()
def tunnels(
    input_path: Optional[Path] = typer.Option(None, "--input", help="Notice stream file (defaults to stdin)"),
) -> None:
    """Report connect/disconnect transitions found in a notice stream."""

    def _report(transition: TunnelTransition) -> None:
        print(
            {
                "state": "connected" if transition.connected else "disconnected",
                "count": transition.count,
                "previous": transition.previous,
            }
        )

    monitor = TunnelStateMonitor(_report)
    _pump_input(input_path, NoticeReceiver(monitor))
    if monitor.count is None:
        print({"state": "unknown", "count": None, "previous": None})
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
