"""Common cli module."""

from __future__ import annotations

import asyncio
import sys
from gettext import gettext
from typing import Any, NoReturn

import asyncclick as click
from rich import print as _echo

from netupgrade.config import ConfigStore
from netupgrade.json import dumps as json_dumps

pass_store = click.make_pass_decorator(ConfigStore)


def echo(*args, **kwargs) -> None:
    """Print a message, unless json output was requested."""
    ctx = click.get_current_context(silent=True)
    if ctx is not None and ctx.find_root().params.get("json"):
        return
    _echo(*args, **kwargs)


def error(msg: str, *notes: str) -> NoReturn:
    """Print an error and any notes to stderr and exit.

    Errors are printed in json mode too, json output goes to stdout.
    """
    _echo(f"[bold red]{msg}[/bold red]", file=sys.stderr)
    for note in notes:
        _echo(note, file=sys.stderr)
    sys.exit(1)


def json_formatter_cb(result: Any, **kwargs) -> None:
    """Format and output the result as JSON, if requested."""
    if not kwargs.get("json") or result is None:
        return
    print(json_dumps(result, indent=True))


def CatchAllExceptions(cls):
    """Capture all exceptions and prints them nicely.

    Idea from https://stackoverflow.com/a/44347763 and
    https://stackoverflow.com/questions/52213375
    """

    def _handle_exception(debug, exc) -> None:
        if isinstance(exc, click.ClickException):
            raise
        # Handle exit request from click.
        if isinstance(exc, click.exceptions.Exit):
            sys.exit(exc.exit_code)
        if isinstance(exc, click.exceptions.Abort):
            sys.exit(0)

        msg = f"Raised error: {exc}"
        if debug:
            _echo(f"[bold red]{msg}[/bold red]", file=sys.stderr)
            raise
        error(msg, "Run with --debug enabled to see stacktrace")

    class _CommandCls(cls):
        _debug = False

        async def make_context(self, info_name, args, parent=None, **extra):
            self._debug = any(arg in ("--debug", "-d") for arg in args)
            try:
                return await super().make_context(
                    info_name, args, parent=parent, **extra
                )
            except Exception as exc:
                _handle_exception(self._debug, exc)

        async def invoke(self, ctx):
            try:
                return await super().invoke(ctx)
            except Exception as exc:
                _handle_exception(self._debug, exc)

        def __call__(self, *args, **kwargs):
            """Run the coroutine in the event loop and print any exceptions.

            asyncclick doesn't properly handle a coroutine receiving
            CancelledError on a KeyboardInterrupt, so we catch the
            KeyboardInterrupt here once asyncio.run has re-raised it.
            """
            try:
                asyncio.run(self.main(*args, **kwargs))
            except KeyboardInterrupt:
                click.echo(gettext("\nAborted!"), file=sys.stderr)
                sys.exit(1)

    return _CommandCls
