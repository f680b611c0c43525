"""
Search filter resolution and repository name filtering

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
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Sequence

from .exceptions import ConfigurationError
from .models import (
    AFFILIATIONS,
    DEFAULT_PARALLEL,
    AccountType,
    FilterFlags,
    QueryOptions,
    RepositoryRecord,
)

logger = logging.getLogger(__name__)


def resolve_query_options(
    flags: FilterFlags, account_type, login: Optional[str] = None
) -> QueryOptions:
    """
    Build the listing query for an account from the search flags.

    Args:
        flags: Search flags, each affiliation/visibility flag being tri-state
        account_type: AccountType or its API string ("User", "Organization"...)
        login: Account being listed (unused for the authenticated account)

    Returns:
        Resolved QueryOptions

    Raises:
        ConfigurationError: account type is not handled
    """
    account_type = AccountType.parse(account_type)

    if account_type is AccountType.AUTHENTICATED:
        visibility = _resolve_visibility(flags)
        affiliation = _resolve_affiliation(flags)
        logger.debug(
            f"[FILTER] Backup authenticated user "
            f"{'public and private' if visibility == 'all' else visibility} "
            f"repositories where user is {','.join(affiliation) or 'nothing'}"
        )
        return QueryOptions(
            account_type=account_type,
            login=login,
            visibility=visibility,
            affiliation=affiliation,
        )

    if account_type is AccountType.USER:
        # Collaborator means nothing when listing someone else's repositories
        if flags.member.is_true and not flags.owner.is_true:
            repo_type = "member"
        elif flags.owner.is_true and not flags.member.is_true:
            repo_type = "owner"
        else:
            repo_type = "all"
        logger.debug(
            f"[FILTER] Backup {login} repositories where user is "
            f"{'owner or member' if repo_type == 'all' else repo_type}"
        )
        return QueryOptions(account_type=account_type, login=login, repo_type=repo_type)

    public = flags.public.is_true
    private = flags.private.is_true
    member = flags.member.is_true
    if public and not private and not member:
        repo_type = "public"
    elif private and not public and not member:
        repo_type = "private"
    elif member and not public and not private:
        repo_type = "member"
    else:
        repo_type = "all"
    logger.debug(f"[FILTER] Backup {repo_type} repositories of organization {login}")
    return QueryOptions(account_type=account_type, login=login, repo_type=repo_type)


def _resolve_visibility(flags: FilterFlags) -> str:
    if flags.public.is_true and not flags.private.is_true:
        return "public"
    if flags.private.is_true and not flags.public.is_true:
        return "private"
    return "all"


def _resolve_affiliation(flags: FilterFlags) -> tuple:
    values = {name: getattr(flags, name) for name in AFFILIATIONS}

    enabled = tuple(name for name in AFFILIATIONS if values[name].is_true)
    if enabled:
        return enabled

    # Nothing explicitly enabled: keep everything not explicitly disabled
    return tuple(name for name in AFFILIATIONS if not values[name].is_false)


def parse_parallel(value, default: int = DEFAULT_PARALLEL) -> int:
    """Parse a worker count, falling back to the default for anything invalid"""
    try:
        parallel = int(value)
    except (TypeError, ValueError):
        return default
    if parallel < 1:
        return default
    return parallel


@dataclass
class FilterResult:
    selected: List[RepositoryRecord] = field(default_factory=list)
    excluded: List[str] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)


def compile_patterns(patterns: Optional[Sequence[str]]) -> List[Pattern]:
    compiled = []
    for pattern in patterns or []:
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            raise ConfigurationError(f"Invalid pattern '{pattern}': {e}") from e
    return compiled


def apply_filters(
    repositories: Sequence[RepositoryRecord],
    exclude: Optional[Sequence[str]] = None,
    match: Optional[Sequence[str]] = None,
) -> FilterResult:
    """
    Apply exclude rules, then match rules, to repository short names.

    A repository is excluded when any exclude pattern is found in its name,
    and kept by match only when every match pattern is found in its name.
    """
    exclude_patterns = compile_patterns(exclude)
    match_patterns = compile_patterns(match)
    result = FilterResult()

    remaining = list(repositories)

    if exclude_patterns:
        logger.debug("[FILTER] Filter repositories following exclude patterns")
        kept = []
        for repo in remaining:
            if any(p.search(repo.name) for p in exclude_patterns):
                result.excluded.append(repo.full_name)
            else:
                kept.append(repo)
        remaining = kept
        logger.debug(
            f"[FILTER] Excluded {len(result.excluded)} repositories {result.excluded}"
        )

    if match_patterns:
        logger.debug("[FILTER] Filter repositories following match patterns")
        kept = []
        for repo in remaining:
            if all(p.search(repo.name) for p in match_patterns):
                kept.append(repo)
            else:
                result.unmatched.append(repo.full_name)
        remaining = kept
        logger.debug(
            f"[FILTER] Excluded {len(result.unmatched)} repositories {result.unmatched}"
        )

    result.selected = remaining
    return result
