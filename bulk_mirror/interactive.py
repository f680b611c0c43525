"""
Interactive prompts completing the command line flags

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

from typing import List, Optional, Sequence

from rich.console import Console
from rich.prompt import Confirm, Prompt

from .models import Flag, FilterFlags, RepositoryRecord

SEARCH_FILTERS = (
    ("Repository type", ("public", "private")),
    ("Affiliation with repository", ("owner", "collaborator", "member")),
)


def prompt_search_filters(flags: FilterFlags, console: Optional[Console] = None):
    """
    Ask which search filters to enable.

    Filters given on the command line are preselected; without any, every
    filter is preselected. Each accepted filter is enabled in ``flags``.
    """
    console = console or Console()
    flags_defined = flags.search_flags_defined()

    for title, names in SEARCH_FILTERS:
        console.print(f"[bold]### {title} ###[/bold]")
        for name in names:
            checked = getattr(flags, name).is_true if flags_defined else True
            if Confirm.ask(f"  {name}", default=checked, console=console):
                setattr(flags, name, Flag.TRUE)


def order_for_selection(repositories: Sequence[RepositoryRecord]) -> List[RepositoryRecord]:
    """Public repositories first, then private ones, keeping listing order"""
    public = [repo for repo in repositories if not repo.private]
    private = [repo for repo in repositories if repo.private]
    return public + private


def parse_selection(answer: str, count: int) -> List[int]:
    """Parse comma separated 1-based numbers and ranges (2-5) into indexes"""
    indexes = set()
    for part in (answer or "").split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            start, _, end = part.partition("-")
            start, end = int(start), int(end)
            if start > end:
                raise ValueError(f"{part} is a reversed range")
            numbers = range(start, end + 1)
        else:
            numbers = [int(part)]
        for number in numbers:
            if not 1 <= number <= count:
                raise ValueError(f"{number} is out of range")
            indexes.add(number - 1)
    return sorted(indexes)


def select_repositories(
    repositories: Sequence[RepositoryRecord], console: Optional[Console] = None
) -> List[RepositoryRecord]:
    """Let the user deselect repositories; at least one must remain"""
    console = console or Console()
    ordered = order_for_selection(repositories)

    section = None
    for number, repo in enumerate(ordered, 1):
        current = "Private repositories" if repo.private else "Public repositories"
        if current != section:
            console.print(f"[bold]### {current} ###[/bold]")
            section = current
        console.print(f"  {number:>3}. {repo.full_name}")

    while True:
        answer = Prompt.ask(
            "Repositories to skip (e.g. 1,3,5-7, empty to keep all)",
            default="",
            console=console,
        )
        try:
            skipped = set(parse_selection(answer, len(ordered)))
        except ValueError as e:
            console.print(f"[red]Invalid selection: {e}[/red]")
            continue

        selected = [repo for index, repo in enumerate(ordered) if index not in skipped]
        if selected:
            return selected
        console.print("[red]You must choose at least one repository.[/red]")


def prompt_clean_refs(console: Optional[Console] = None) -> bool:
    return Confirm.ask(
        "Do you want to clean pull request references from backup repositories?",
        default=False,
        console=console,
    )


def prompt_lfs(console: Optional[Console] = None) -> bool:
    return Confirm.ask(
        "Do you want to include LFS objects (if relevant) in backup?",
        default=True,
        console=console,
    )
