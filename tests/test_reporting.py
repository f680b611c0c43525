"""
Tests for console reporting

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

import io

from rich.console import Console

from bulk_mirror.models import CloneErrorKind, RepositoryOutcome, RunReport
from bulk_mirror.pipeline import EventKind, PipelineEvent
from bulk_mirror.reporting import ConsoleReporter


def make_reporter(quiet=False):
    console = Console(file=io.StringIO(), force_terminal=False, width=120)
    return ConsoleReporter(quiet=quiet, console=console), console


class TestConsoleReporterEvents:
    """Tests for printing pipeline events"""

    def test_warning_printed(self):
        """Test stage warnings are shown"""
        reporter, console = make_reporter()

        reporter(PipelineEvent(EventKind.LFS_WARNING, "acme/a", "Failed to fetch LFS objects from acme/a"))

        assert "Failed to fetch LFS objects from acme/a" in console.file.getvalue()

    def test_clone_failure_printed_when_quiet(self):
        """Test failures are shown even in quiet mode"""
        reporter, console = make_reporter(quiet=True)

        reporter(PipelineEvent(EventKind.CLONE_FAILED, "acme/a", "fatal: [remote] not found"))

        output = console.file.getvalue()
        assert "acme/a" in output
        assert "[remote]" in output

    def test_progress_counts_finished(self):
        """Test the progress bar advances once per finished repository"""
        reporter, _ = make_reporter()
        reporter.start(2)

        reporter(PipelineEvent(EventKind.FINISHED, "acme/a", completed=1, total=2))
        reporter(PipelineEvent(EventKind.FINISHED, "acme/b", completed=2, total=2))

        assert reporter.progress.n == 2
        reporter.close()
        assert reporter.progress is None


class TestConsoleReporterSummary:
    """Tests for the end of run summary"""

    def test_success_summary(self):
        """Test a clean run summary"""
        reporter, console = make_reporter()
        report = RunReport(total_selected=1)
        report.record(RepositoryOutcome("acme/a", cloned=True))

        reporter.summary(report)

        assert "All repositories backed up successfully" in console.file.getvalue()

    def test_quiet_success_prints_nothing(self):
        """Test quiet mode skips the summary of a clean run"""
        reporter, console = make_reporter(quiet=True)
        report = RunReport(total_selected=1)
        report.record(RepositoryOutcome("acme/a", cloned=True))

        reporter.summary(report)

        assert console.file.getvalue() == ""

    def test_destination_not_empty_listed(self):
        """Test repositories whose destination was not empty are named"""
        reporter, console = make_reporter(quiet=True)
        report = RunReport(total_selected=1)
        report.record(
            RepositoryOutcome("acme/a", fatal_error=CloneErrorKind.DESTINATION_NOT_EMPTY)
        )

        reporter.summary(report)

        output = console.file.getvalue()
        assert "acme/a" in output
        assert "destination path exists and is not empty" in output
