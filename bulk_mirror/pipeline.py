"""
Concurrent mirror backup pipeline

Each selected repository goes through clone, then optionally LFS fetch and
pull ref cleanup. A failed clone is fatal for that repository only; a failed
LFS fetch or ref cleanup is a warning and never stops the other stage.

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

import logging
import subprocess
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from .git import GitRunner
from .models import (
    DEFAULT_PARALLEL,
    CloneErrorKind,
    RepositoryOutcome,
    RepositoryRecord,
    RunReport,
)

PULL_REF_SEGMENT = "/pull/"


class RepositoryState(Enum):
    PENDING = "pending"
    CLONING = "cloning"
    CLONED = "cloned"
    CLONE_FAILED = "clone_failed"


class EventKind(Enum):
    STARTED = "started"
    CLONED = "cloned"
    CLONE_FAILED = "clone_failed"
    LFS_FETCHED = "lfs_fetched"
    LFS_WARNING = "lfs_warning"
    LFS_UNAVAILABLE = "lfs_unavailable"
    REFS_CLEANED = "refs_cleaned"
    REFS_WARNING = "refs_warning"
    FINISHED = "finished"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PipelineEvent:
    kind: EventKind
    full_name: Optional[str] = None
    message: str = ""
    completed: int = 0
    total: int = 0


@dataclass(frozen=True)
class PipelineOptions:
    parallel: int = DEFAULT_PARALLEL
    lfs: bool = True
    clean_refs: bool = False


EventHandler = Callable[[PipelineEvent], None]


def select_pull_refs(refs: Sequence[str]) -> List[str]:
    return [ref for ref in refs if PULL_REF_SEGMENT in ref]


class BackupPipeline:
    """
    Mirrors repositories into a destination directory with a bounded pool of
    workers.

    Every repository is attempted exactly once. Events describing each
    repository's progress are handed to ``on_event``, one at a time.
    """

    def __init__(
        self,
        git: GitRunner,
        destination,
        options: Optional[PipelineOptions] = None,
        on_event: Optional[EventHandler] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.git = git
        self.destination = Path(destination)
        self.options = options or PipelineOptions()
        self.on_event = on_event
        self.cancel_event = cancel_event or threading.Event()
        self.states: Dict[str, RepositoryState] = {}
        self.lfs_enabled = False
        self.logger = logging.getLogger(self.__class__.__name__)
        self._emit_lock = threading.Lock()

    def _emit(self, kind: EventKind, full_name: str = None, message: str = "", **kw):
        if self.on_event is None:
            return
        with self._emit_lock:
            self.on_event(PipelineEvent(kind, full_name, message, **kw))

    def _set_state(self, repo: RepositoryRecord, state: RepositoryState):
        self.states[repo.full_name] = state

    def cancel(self):
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def repository_path(self, repo: RepositoryRecord) -> Path:
        return self.destination / f"{repo.full_name}.git"

    def probe_lfs(self) -> bool:
        """Check git-lfs once per run; without it the LFS stage is skipped"""
        if not self.options.lfs:
            self.logger.debug("[LFS] Backup will skip LFS objects")
            return False

        if self.git.has_lfs():
            self.logger.debug("[LFS] git-lfs available")
            return True

        message = "Git LFS is not installed, objects stored through LFS will not be backed up."
        self.logger.warning(f"[LFS] {message}")
        self._emit(EventKind.LFS_UNAVAILABLE, message=message)
        return False

    def run(self, repositories: Sequence[RepositoryRecord]) -> RunReport:
        """
        Back up every repository and aggregate their outcomes.

        A KeyboardInterrupt, or the cancel event being set, stops repositories
        that have not started yet; the report is then marked interrupted.
        """
        repositories = self._unique(repositories)
        report = RunReport(total_selected=len(repositories))
        if not repositories:
            return report

        self.lfs_enabled = self.probe_lfs()
        for repo in repositories:
            self._set_state(repo, RepositoryState.PENDING)

        parallel = max(1, self.options.parallel)
        self.logger.info(
            f"[PROCESS] Backing up {len(repositories)} repositories with {parallel} workers"
        )

        executor = ThreadPoolExecutor(max_workers=parallel)
        futures: Dict[Future, RepositoryRecord] = {
            executor.submit(self._run_repository, repo): repo for repo in repositories
        }
        completed = 0
        interrupted = False

        try:
            for future in as_completed(futures):
                outcome = future.result()
                report.record(outcome)
                completed += 1
                self._emit(
                    EventKind.FINISHED,
                    outcome.full_name,
                    outcome.message,
                    completed=completed,
                    total=len(repositories),
                )
        except KeyboardInterrupt:
            self.logger.warning("[INTERRUPT] Stopping, no new repository will be started")
            self.cancel()
            interrupted = True
            for future, repo in futures.items():
                if repo.full_name in report.outcomes:
                    continue
                # A worker that raised KeyboardInterrupt holds it as its exception
                if (
                    future.done()
                    and not future.cancelled()
                    and future.exception() is None
                ):
                    report.record(future.result())
                else:
                    future.cancel()
                    report.record(
                        RepositoryOutcome(
                            full_name=repo.full_name,
                            fatal_error=CloneErrorKind.CANCELLED,
                            message="interrupted",
                        )
                    )
        finally:
            # In-flight clones are abandoned on interrupt
            executor.shutdown(wait=not interrupted, cancel_futures=interrupted)

        report.interrupted = interrupted or self.cancelled
        return report

    def _unique(self, repositories: Sequence[RepositoryRecord]) -> List[RepositoryRecord]:
        seen = set()
        unique = []
        for repo in repositories:
            if repo.full_name in seen:
                self.logger.debug(f"[PROCESS] Skipping duplicate repository {repo.full_name}")
                continue
            seen.add(repo.full_name)
            unique.append(repo)
        return unique

    def _run_repository(self, repo: RepositoryRecord) -> RepositoryOutcome:
        if self.cancelled:
            self._emit(EventKind.CANCELLED, repo.full_name, "not started")
            return RepositoryOutcome(
                full_name=repo.full_name,
                fatal_error=CloneErrorKind.CANCELLED,
                message="not started",
            )

        try:
            return self.backup_repository(repo)
        except Exception as e:
            self.logger.error(
                f"[ERROR] Backup failed for {repo.full_name}: {type(e).__name__}: {e}"
            )
            self._set_state(repo, RepositoryState.CLONE_FAILED)
            return RepositoryOutcome(
                full_name=repo.full_name,
                fatal_error=CloneErrorKind.CLONE_FAILED,
                message=str(e),
            )

    def backup_repository(self, repo: RepositoryRecord) -> RepositoryOutcome:
        """Run every enabled stage for one repository, in order"""
        outcome = RepositoryOutcome(full_name=repo.full_name)
        path = self.repository_path(repo)

        self._emit(EventKind.STARTED, repo.full_name)
        self._set_state(repo, RepositoryState.CLONING)

        if not self.clone(repo, path, outcome):
            self._set_state(repo, RepositoryState.CLONE_FAILED)
            return outcome

        self._set_state(repo, RepositoryState.CLONED)
        outcome.cloned = True

        if self.lfs_enabled:
            self.fetch_lfs(repo, path, outcome)

        if self.options.clean_refs:
            self.clean_refs(repo, path, outcome)

        if not outcome.message:
            outcome.message = "backed up"
        return outcome

    def clone(self, repo: RepositoryRecord, path: Path, outcome: RepositoryOutcome) -> bool:
        url = repo.https_url
        if not url:
            outcome.fatal_error = CloneErrorKind.CLONE_FAILED
            outcome.message = "no HTTPS clone URL"
            self.logger.error(f"[ERROR] No HTTPS clone URL for {repo.full_name}")
            self._emit(EventKind.CLONE_FAILED, repo.full_name, outcome.message)
            return False

        self.logger.info(f"[BACKUP] Cloning {repo.full_name}...")
        try:
            result = self.git.clone_mirror(url, path)
        except OSError as e:
            outcome.fatal_error = CloneErrorKind.CLONE_FAILED
            outcome.message = str(e)
            self.logger.error(f"[ERROR] Clone failed for {repo.full_name}: {e}")
            self._emit(EventKind.CLONE_FAILED, repo.full_name, outcome.message)
            return False

        if result.ok:
            self.logger.info(f"[SUCCESS] Cloned {repo.full_name} to {path}")
            self._emit(EventKind.CLONED, repo.full_name, str(path))
            return True

        if result.destination_not_empty:
            outcome.fatal_error = CloneErrorKind.DESTINATION_NOT_EMPTY
            outcome.message = (
                f"Failed to backup {repo.full_name}, destination path exists and is not empty"
            )
        else:
            outcome.fatal_error = CloneErrorKind.CLONE_FAILED
            outcome.message = result.stderr[:500].strip() or f"git exited with {result.returncode}"

        self.logger.error(f"[ERROR] Clone failed for {repo.full_name}: {outcome.message}")
        self._emit(EventKind.CLONE_FAILED, repo.full_name, outcome.message)
        return False

    def fetch_lfs(self, repo: RepositoryRecord, path: Path, outcome: RepositoryOutcome):
        self.logger.info(f"[LFS] Fetching LFS objects for {repo.full_name}...")
        try:
            result = self.git.lfs_fetch_all(path)
            error = None if result.ok else result.stderr[:500].strip()
        except (OSError, subprocess.SubprocessError) as e:
            error = str(e)

        if error is None:
            self._emit(EventKind.LFS_FETCHED, repo.full_name)
            return

        outcome.lfs_warning = True
        self.logger.warning(
            f"[LFS] Failed to fetch LFS objects from {repo.full_name}: {error}"
        )
        self._emit(
            EventKind.LFS_WARNING,
            repo.full_name,
            f"Failed to fetch LFS objects from {repo.full_name}",
        )

    def clean_refs(self, repo: RepositoryRecord, path: Path, outcome: RepositoryOutcome):
        self.logger.debug(f"[REFS] Cleaning /pull refs of {repo.full_name}")
        failed = []
        try:
            pull_refs = select_pull_refs(self.git.list_refs(path))
            deleted = 0
            for ref in pull_refs:
                if self.git.delete_ref(path, ref).ok:
                    deleted += 1
                else:
                    failed.append(ref)
        except (OSError, subprocess.SubprocessError) as e:
            outcome.refs_warning = True
            self.logger.warning(
                f"[REFS] Failed to clean /pull refs from {repo.full_name}: {e}"
            )
            self._emit(
                EventKind.REFS_WARNING,
                repo.full_name,
                f"Failed to clean /pull refs from {repo.full_name}",
            )
            return

        outcome.refs_deleted = deleted
        if failed:
            outcome.refs_warning = True
            self.logger.warning(
                f"[REFS] Failed to delete {len(failed)} /pull refs from {repo.full_name}"
            )
            self._emit(
                EventKind.REFS_WARNING,
                repo.full_name,
                f"Failed to clean /pull refs from {repo.full_name}",
            )
            return

        message = f"{deleted} pull refs deleted" if deleted else "no pull refs to delete"
        self.logger.debug(f"[REFS] {repo.full_name}: {message}")
        self._emit(EventKind.REFS_CLEANED, repo.full_name, message)
