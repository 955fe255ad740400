"""``load-guard`` command: import modules with verification enabled and report.

Usage:
    load-guard check acme.models acme.services --path src
    load-guard check acme --strict         # exit 2 when advisories were emitted
    load-guard probe                        # show the filesystem case mode

Exit codes: 0 clean, 1 integrity error or bad config, 2 advisories under --strict.
"""

from __future__ import annotations

import importlib
import logging
import sys
import warnings
from pathlib import Path

import rich.console
import rich.panel
import rich.table
import typer

from load_guard.error_boundary import ErrorBoundary
from load_guard.errors import ClassIntegrityError, DeprecationAdvisory
from load_guard.loader import DebugClassLoader
from load_guard.registry import default_registry
from load_guard.settings import load_settings

__all__ = ['app', 'main']

app = typer.Typer(help='Verify module integrity and declaration markers at import time.', add_completion=False)


@app.command('check')
def cli_check(
    modules: list[str] = typer.Argument(..., help='Dotted module names to import'),
    path: list[Path] | None = typer.Option(None, '--path', '-p', help='Directory prepended to sys.path'),
    config: Path | None = typer.Option(None, '--config', help='Settings JSON file'),
    strict: bool = typer.Option(False, '--strict', help='Exit 2 when advisories were emitted'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Log verification steps'),
) -> None:
    """Import MODULES through verifying finders and list advisories."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(message)s')

    err_console = rich.console.Console(stderr=True)
    boundary = ErrorBoundary(exit_code=1)

    @boundary.handler(ClassIntegrityError)
    def _handle_integrity(exc: ClassIntegrityError) -> None:
        err_console.print(rich.panel.Panel(str(exc), border_style='red', title='Integrity error', title_align='left'))

    @boundary.handler(ValueError)
    def _handle_config(exc: ValueError) -> None:
        err_console.print(rich.panel.Panel(str(exc), border_style='red', title='Error', title_align='left'))

    advisories: list[str] = []
    with boundary:
        settings = load_settings(config)
        for entry in reversed(path or []):
            sys.path.insert(0, str(entry.resolve()))

        DebugClassLoader.enable(settings=settings)
        try:
            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter('always', DeprecationAdvisory)
                for name in modules:
                    importlib.import_module(name)
        finally:
            DebugClassLoader.disable()

        advisories = [str(w.message) for w in caught if issubclass(w.category, DeprecationAdvisory)]

    _print_report(modules, advisories)

    if strict and advisories:
        raise typer.Exit(code=2)


@app.command('probe')
def cli_probe() -> None:
    """Show how the current filesystem treats filename case."""
    mode = default_registry().case_check
    print(f'Filesystem case mode: {mode.name}')


def _print_report(modules: list[str], advisories: list[str]) -> None:
    console = rich.console.Console()
    if advisories:
        table = rich.table.Table(title='Advisories', show_lines=True)
        table.add_column('#', justify='right', style='dim')
        table.add_column('Message')
        for number, message in enumerate(advisories, start=1):
            table.add_row(str(number), message)
        console.print(table)
    console.print(f'{len(modules)} module(s) verified, {len(advisories)} advisory(ies)')


def main() -> None:
    app()


if __name__ == '__main__':
    main()
