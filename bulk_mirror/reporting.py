"""
Console presentation of pipeline events and the final backup summary

Copyright 2025 HyperSec

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from tqdm import tqdm

from .models import CloneErrorKind, RunReport
from .pipeline import EventKind, PipelineEvent

WARNING_EVENTS = {EventKind.LFS_WARNING, EventKind.REFS_WARNING, EventKind.LFS_UNAVAILABLE}


class ConsoleReporter:
    """
    Single consumer of the pipeline event stream.

    Warnings and failures are printed as they happen, above a progress bar
    counting finished repositories.
    """

    def __init__(self, quiet: bool = False, console: Optional[Console] = None):
        self.quiet = quiet
        self.console = console or Console(stderr=True)
        self.progress: Optional[tqdm] = None

    def start(self, total: int):
        self.progress = tqdm(
            total=total, desc="Backing up", unit="repo", disable=self.quiet
        )

    def close(self):
        if self.progress is not None:
            self.progress.close()
            self.progress = None

    def _print(self, message: str):
        if self.progress is not None:
            with tqdm.external_write_mode():
                self.console.print(message)
        else:
            self.console.print(message)

    def __call__(self, event: PipelineEvent):
        if event.kind in WARNING_EVENTS:
            self._print(f"[yellow]Warning:[/yellow] {escape(event.message)}")
        elif event.kind is EventKind.CLONE_FAILED:
            self._print(f"[red]Error:[/red] {event.full_name}: {escape(event.message)}")
        elif event.kind is EventKind.REFS_CLEANED and not self.quiet:
            self._print(f"[dim]{event.full_name}: {event.message}[/dim]")
        elif event.kind is EventKind.FINISHED and self.progress is not None:
            self.progress.update(1)
            self.progress.set_postfix({"done": event.completed, "total": event.total})

    def summary(self, report: RunReport):
        if self.quiet and report.exit_code == 0:
            return

        table = Table(title="Backup summary", show_header=False)
        table.add_column("Metric")
        table.add_column("Count", justify="right")
        table.add_row("Selected repositories", str(report.total_selected))
        table.add_row("Attempted", str(report.attempted))
        table.add_row("Backed up", str(report.succeeded))
        table.add_row("With warnings", str(report.warned))
        table.add_row("Failed", str(report.failed))
        self.console.print(table)

        not_empty = [
            name
            for name, outcome in report.outcomes.items()
            if outcome.fatal_error is CloneErrorKind.DESTINATION_NOT_EMPTY
        ]
        for name in not_empty:
            self.console.print(
                f"[red]{name}:[/red] destination path exists and is not empty"
            )

        if report.interrupted:
            self.console.print("[yellow]Backup interrupted[/yellow]")
        elif report.failed or report.warned:
            self.console.print(
                f"[yellow]{report.failed} failed, {report.warned} with warnings - check logs for details[/yellow]"
            )
        else:
            self.console.print("[green]All repositories backed up successfully![/green]")
