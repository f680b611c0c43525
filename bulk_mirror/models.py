"""
Data model shared by the listing client, filters and backup pipeline

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

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .exceptions import ConfigurationError

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_NOTHING_TO_BACKUP = 3
EXIT_INTERRUPTED = 130

DEFAULT_PARALLEL = 8

AFFILIATIONS = ("owner", "collaborator", "member")


class Flag(Enum):
    """Tri-state command line flag: explicitly enabled, disabled, or not given"""

    TRUE = "true"
    FALSE = "false"
    UNSET = "unset"

    @classmethod
    def from_optional(cls, value: Optional[bool]) -> "Flag":
        if value is None:
            return cls.UNSET
        return cls.TRUE if value else cls.FALSE

    @property
    def is_true(self) -> bool:
        return self is Flag.TRUE

    @property
    def is_false(self) -> bool:
        return self is Flag.FALSE


class AccountType(Enum):
    AUTHENTICATED = "Authenticated"
    USER = "User"
    ORGANIZATION = "Organization"

    @classmethod
    def parse(cls, value) -> "AccountType":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ConfigurationError(f"User type {value} is not handled.") from None


@dataclass
class FilterFlags:
    """
    Per-run search and pipeline flags.

    Filled in from the command line and, in interactive mode, completed by
    prompts before being frozen for the pipeline.
    """

    public: Flag = Flag.UNSET
    private: Flag = Flag.UNSET
    owner: Flag = Flag.UNSET
    collaborator: Flag = Flag.UNSET
    member: Flag = Flag.UNSET
    exclude: List[str] = field(default_factory=list)
    match: List[str] = field(default_factory=list)
    lfs: bool = True
    clean_refs: bool = False
    parallel: int = DEFAULT_PARALLEL
    quiet: bool = False
    interactive: bool = False

    def search_flags_defined(self) -> bool:
        return any(
            flag is not Flag.UNSET
            for flag in (
                self.public,
                self.private,
                self.owner,
                self.collaborator,
                self.member,
            )
        )

    def freeze(self) -> "FilterFlags":
        return copy.deepcopy(self)


@dataclass(frozen=True)
class QueryOptions:
    account_type: AccountType
    login: Optional[str] = None
    visibility: Optional[str] = None
    affiliation: Tuple[str, ...] = ()
    repo_type: Optional[str] = None
    per_page: int = 100

    def endpoint(self) -> str:
        if self.account_type is AccountType.AUTHENTICATED:
            return "/user/repos"
        if self.account_type is AccountType.USER:
            return f"/users/{self.login}/repos"
        return f"/orgs/{self.login}/repos"

    def params(self) -> Dict[str, str]:
        params = {"per_page": str(self.per_page)}
        if self.account_type is AccountType.AUTHENTICATED:
            params["visibility"] = self.visibility or "all"
            params["affiliation"] = ",".join(
                "organization_member" if aff == "member" else aff
                for aff in self.affiliation
            )
        else:
            params["type"] = self.repo_type or "all"
        return params


@dataclass(frozen=True)
class RepositoryRecord:
    full_name: str
    name: str
    private: bool
    fork: bool
    urls: Dict[str, str] = field(default_factory=dict, compare=False, hash=False)
    description: Optional[str] = None

    @property
    def https_url(self) -> Optional[str]:
        return self.urls.get("https")


@dataclass
class ListingResult:
    records: List[RepositoryRecord] = field(default_factory=list)
    truncated: bool = False
    dropped: List[str] = field(default_factory=list)
    pages: int = 0


@dataclass(frozen=True)
class Account:
    login: str
    type: str


class CloneErrorKind(Enum):
    DESTINATION_NOT_EMPTY = "destination_not_empty"
    CLONE_FAILED = "clone_failed"
    CANCELLED = "cancelled"


@dataclass
class RepositoryOutcome:
    full_name: str
    cloned: bool = False
    lfs_warning: bool = False
    refs_warning: bool = False
    fatal_error: Optional[CloneErrorKind] = None
    refs_deleted: Optional[int] = None
    message: str = ""

    @property
    def is_fatal(self) -> bool:
        return self.fatal_error is not None

    @property
    def has_warning(self) -> bool:
        return self.lfs_warning or self.refs_warning


@dataclass
class RunReport:
    total_selected: int = 0
    attempted: int = 0
    warned: int = 0
    failed: int = 0
    interrupted: bool = False
    outcomes: Dict[str, RepositoryOutcome] = field(default_factory=dict)

    def record(self, outcome: RepositoryOutcome) -> None:
        self.outcomes[outcome.full_name] = outcome
        if outcome.fatal_error is CloneErrorKind.CANCELLED:
            return
        self.attempted += 1
        if outcome.is_fatal:
            self.failed += 1
        elif outcome.has_warning:
            self.warned += 1

    @property
    def succeeded(self) -> int:
        return self.attempted - self.failed

    @property
    def exit_code(self) -> int:
        if self.interrupted:
            return EXIT_INTERRUPTED
        if self.failed or self.warned:
            return EXIT_FAILURES
        return EXIT_OK
