"""
Thin wrapper around the git command line

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
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

DESTINATION_NOT_EMPTY_MARKER = "already exists and is not an empty directory"

PathLike = Union[str, Path]


def mask_credentials(text: str, secret: str = "*****") -> str:
    """Hide userinfo embedded in any URL found in text"""
    if not text:
        return text
    return re.sub(r"(https?://)[^/@\s]+@", rf"\g<1>{secret}@", text)


@dataclass
class GitResult:
    returncode: int
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def destination_not_empty(self) -> bool:
        return DESTINATION_NOT_EMPTY_MARKER in (self.stderr or "")


class GitRunner:
    """Runs the git operations a mirror backup needs"""

    def __init__(self, git: str = "git"):
        self.git = git
        self.logger = logging.getLogger(self.__class__.__name__)

    def _run(self, args: List[str], cwd: PathLike = None, capture_stdout=False):
        # stdout goes to DEVNULL unless needed, git progress output can be large
        return subprocess.run(
            [self.git] + args,
            stdout=subprocess.PIPE if capture_stdout else subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            text=True,
            cwd=str(cwd) if cwd else None,
        )

    def _probe(self, args: List[str]) -> bool:
        try:
            result = subprocess.run(
                [self.git] + args,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError:
            return False
        return result.returncode == 0

    def has_git(self) -> bool:
        return self._probe(["--version"])

    def has_lfs(self) -> bool:
        return self._probe(["lfs", "version"])

    def clone_mirror(self, url: str, destination: PathLike) -> GitResult:
        self.logger.debug(
            f"[CLONE] git clone --mirror {mask_credentials(url)} {destination}"
        )
        result = self._run(["clone", "--mirror", url, str(destination)])
        return GitResult(result.returncode, mask_credentials(result.stderr or ""))

    def lfs_fetch_all(self, repo_path: PathLike) -> GitResult:
        result = self._run(["lfs", "fetch", "--all"], cwd=repo_path)
        return GitResult(result.returncode, mask_credentials(result.stderr or ""))

    def list_refs(self, repo_path: PathLike) -> List[str]:
        """
        List every ref name of a repository.

        Raises:
            subprocess.CalledProcessError: git show-ref failed
        """
        result = self._run(["show-ref"], cwd=repo_path, capture_stdout=True)

        # show-ref exits 1 with no output when the repository has no refs
        if result.returncode == 1 and not result.stdout.strip():
            return []
        if result.returncode != 0:
            raise subprocess.CalledProcessError(
                result.returncode, "git show-ref", result.stdout, result.stderr
            )

        refs = []
        for line in result.stdout.splitlines():
            parts = line.split(" ", 1)
            if len(parts) == 2 and parts[1]:
                refs.append(parts[1].strip())
        return refs

    def delete_ref(self, repo_path: PathLike, ref: str) -> GitResult:
        result = self._run(["update-ref", "-d", ref], cwd=repo_path)
        return GitResult(result.returncode, result.stderr or "")
