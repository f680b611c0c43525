"""
Tests for interactive prompts

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

import pytest
from rich.console import Console

from bulk_mirror import interactive
from bulk_mirror.models import FilterFlags, Flag, RepositoryRecord


def make_repo(name, private=False):
    return RepositoryRecord(
        full_name=f"acme/{name}", name=name, private=private, fork=False
    )


@pytest.fixture
def console():
    return Console(file=io.StringIO(), force_terminal=False)


class TestParseSelection:
    """Tests for parse_selection function"""

    def test_numbers_and_ranges(self):
        """Test numbers and ranges map to zero-based indexes"""
        assert interactive.parse_selection("1, 3, 5-7", 8) == [0, 2, 4, 5, 6]

    def test_empty_answer(self):
        """Test an empty answer selects nothing"""
        assert interactive.parse_selection("", 3) == []

    def test_out_of_range(self):
        """Test numbers outside the list are rejected"""
        with pytest.raises(ValueError):
            interactive.parse_selection("4", 3)

    def test_not_a_number(self):
        """Test garbage is rejected"""
        with pytest.raises(ValueError):
            interactive.parse_selection("abc", 3)

    def test_reversed_range(self):
        """Test a range whose start is after its end is rejected"""
        with pytest.raises(ValueError, match="5-2"):
            interactive.parse_selection("5-2", 8)

    def test_single_number_range(self):
        """Test a range of one number selects it"""
        assert interactive.parse_selection("3-3", 5) == [2]


class TestOrderForSelection:
    """Tests for order_for_selection function"""

    def test_public_first(self):
        """Test public repositories are listed before private ones"""
        repos = [make_repo("p1", True), make_repo("a"), make_repo("p2", True), make_repo("b")]

        ordered = interactive.order_for_selection(repos)

        assert [r.name for r in ordered] == ["a", "b", "p1", "p2"]


class TestPromptSearchFilters:
    """Tests for prompt_search_filters function"""

    def test_accepted_filters_enabled(self, monkeypatch, console):
        """Test accepted filters are set and refused ones left alone"""
        answers = {"public": True, "private": False, "owner": True, "collaborator": False, "member": False}
        defaults = {}

        def ask(prompt, default=None, console=None):
            name = prompt.strip()
            defaults[name] = default
            return answers[name]

        monkeypatch.setattr(interactive.Confirm, "ask", ask)
        flags = FilterFlags()

        interactive.prompt_search_filters(flags, console)

        assert flags.public is Flag.TRUE
        assert flags.private is Flag.UNSET
        assert flags.owner is Flag.TRUE
        assert flags.member is Flag.UNSET
        assert all(defaults.values())

    def test_command_line_flags_preselected(self, monkeypatch, console):
        """Test only filters given on the command line are preselected"""
        defaults = {}

        def ask(prompt, default=None, console=None):
            defaults[prompt.strip()] = default
            return default

        monkeypatch.setattr(interactive.Confirm, "ask", ask)
        flags = FilterFlags(private=Flag.TRUE)

        interactive.prompt_search_filters(flags, console)

        assert defaults["private"] is True
        assert defaults["public"] is False
        assert defaults["owner"] is False


class TestSelectRepositories:
    """Tests for select_repositories function"""

    def test_skip_some(self, monkeypatch, console):
        """Test skipped numbers are removed from the selection"""
        monkeypatch.setattr(interactive.Prompt, "ask", lambda *a, **kw: "2")
        repos = [make_repo("a"), make_repo("b"), make_repo("c", True)]

        selected = interactive.select_repositories(repos, console)

        assert [r.name for r in selected] == ["a", "c"]

    def test_requires_one_repository(self, monkeypatch, console):
        """Test asking again until at least one repository is kept"""
        answers = iter(["1-2", "9", "1"])
        monkeypatch.setattr(interactive.Prompt, "ask", lambda *a, **kw: next(answers))
        repos = [make_repo("a"), make_repo("b")]

        selected = interactive.select_repositories(repos, console)

        assert [r.name for r in selected] == ["b"]
        output = console.file.getvalue()
        assert "at least one repository" in output
        assert "Invalid selection" in output
