"""
Shared test fixtures

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

import shutil
import subprocess
import threading
import time
from pathlib import Path

import pytest

from bulk_mirror.git import GitResult

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def git(*args, cwd):
    subprocess.run(["git", *args], cwd=cwd, capture_output=True, check=True)


@pytest.fixture
def local_git_repo(tmp_path):
    """Create a local git repository with one commit and one pull ref"""
    repo_path = Path(tmp_path) / "source-repo"
    repo_path.mkdir()

    git("init", cwd=repo_path)
    git("config", "user.email", "test@test.com", cwd=repo_path)
    git("config", "user.name", "Test User", cwd=repo_path)
    git("config", "commit.gpgsign", "false", cwd=repo_path)

    (repo_path / "README.md").write_text("# Test Repository\n\nThis is a test.")
    git("add", "README.md", cwd=repo_path)
    git("commit", "-m", "Initial commit", cwd=repo_path)

    # What GitHub exposes for an open pull request
    git("update-ref", "refs/pull/1/head", "HEAD", cwd=repo_path)

    return repo_path


class FakeGit:
    """Stands in for GitRunner, recording calls and concurrency"""

    def __init__(
        self,
        fail=(),
        lfs=True,
        lfs_fail=(),
        refs=None,
        refs_error=False,
        barrier=None,
        delay=0.0,
        git_available=True,
    ):
        self.git_available = git_available
        self.fail = set(fail)
        self.lfs = lfs
        self.lfs_fail = set(lfs_fail)
        self.refs = refs if refs is not None else []
        self.refs_error = refs_error
        self.barrier = barrier
        self.delay = delay
        self.lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.cloned = []
        self.lfs_fetched = []
        self.deleted = []
        self.lfs_probes = 0

    def has_git(self):
        return self.git_available

    def has_lfs(self):
        self.lfs_probes += 1
        return self.lfs

    def clone_mirror(self, url, destination):
        with self.lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.barrier is not None:
                self.barrier.wait(timeout=5)
            if self.delay:
                time.sleep(self.delay)
            if any(name in url for name in self.fail):
                return GitResult(128, "fatal: repository not found")
            Path(destination).mkdir(parents=True)
            with self.lock:
                self.cloned.append(url)
            return GitResult(0)
        finally:
            with self.lock:
                self.active -= 1

    def lfs_fetch_all(self, path):
        self.lfs_fetched.append(Path(path).name)
        if Path(path).name in self.lfs_fail:
            return GitResult(2, "batch response: Repository not found")
        return GitResult(0)

    def list_refs(self, path):
        if self.refs_error:
            raise subprocess.CalledProcessError(128, "git show-ref")
        return list(self.refs)

    def delete_ref(self, path, ref):
        self.deleted.append(ref)
        return GitResult(0)
