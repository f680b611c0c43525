"""
GitHub repository listing client

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
from typing import Any, Dict, Iterator, List, Optional, Tuple

import requests
from github import Auth, BadCredentialsException, Github, GithubException

from .exceptions import AuthenticationError, ConfigurationError
from .models import (
    Account,
    AccountType,
    ListingResult,
    QueryOptions,
    RepositoryRecord,
)

DEFAULT_API_URL = "https://api.github.com"


class GitHubClient:
    """
    Fetches repository listings from the GitHub REST API.

    Listings are read page by page with requests, following the ``Link``
    header. Account lookups go through PyGithub.
    """

    def __init__(
        self,
        token: str,
        api_url: str = DEFAULT_API_URL,
        session: Optional[requests.Session] = None,
        github: Optional[Github] = None,
    ):
        if not token:
            raise AuthenticationError("No GitHub token provided")

        self.token = token
        self.api_url = api_url.rstrip("/")
        self.logger = logging.getLogger(self.__class__.__name__)

        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"token {token}",
                "Accept": "application/vnd.github+json",
            }
        )

        self.client = github or Github(auth=Auth.Token(token), base_url=self.api_url)

    def get_authenticated_login(self) -> str:
        """Return the login of the token owner, validating the token"""
        try:
            user = self.client.get_user()
            login = user.login  # Forces the request
        except BadCredentialsException as e:
            self.logger.error("GitHub authentication failed: Invalid or expired token")
            raise AuthenticationError(f"Invalid GitHub token: {e}") from e
        except GithubException as e:
            self.logger.error(f"GitHub authentication failed: {e}")
            raise AuthenticationError(f"Invalid GitHub token: {e}") from e

        self.logger.debug(f"GitHub authentication successful for user: {login}")
        return login

    def get_account(self, login: str) -> Account:
        """Look up a user or organization account by login"""
        try:
            user = self.client.get_user(login)
            account = Account(login=user.login, type=user.type)
        except BadCredentialsException as e:
            raise AuthenticationError(f"Invalid GitHub token: {e}") from e
        except GithubException as e:
            if e.status == 404:
                raise ConfigurationError(f"Account {login} does not exist") from e
            raise ConfigurationError(f"Could not look up account {login}: {e}") from e

        self.logger.debug(f"[ACCOUNT] {account.login} is a {account.type} account")
        return account

    def resolve_account_type(self, source: str, authenticated_login: str) -> AccountType:
        """The token owner is listed through /user/repos, anyone else by type"""
        if source == authenticated_login:
            return AccountType.AUTHENTICATED
        return AccountType.parse(self.get_account(source).type)

    def iter_pages(
        self, url: str, params: Optional[Dict[str, str]] = None
    ) -> Iterator[Tuple[int, Optional[List[Dict[str, Any]]]]]:
        """
        Yield (page number, items) for each page of a listing.

        Iteration stops after the page without a ``rel="next"`` link. A page
        that cannot be fetched is yielded once with ``None`` items and ends
        the iteration.
        """
        page = 1
        next_url: Optional[str] = url

        while next_url:
            self.logger.debug(f"[LIST] Fetching {next_url}")
            try:
                response = self.session.get(next_url, params=params)
            except requests.RequestException as e:
                self.logger.warning(f"[LIST] Failed to fetch {next_url}: {e}")
                yield page, None
                return

            if not response.ok:
                self.logger.warning(
                    f"[LIST] Failed to fetch {next_url}: {response.status_code}"
                )
                self.logger.debug(f"Response: {response.text[:500]}")
                yield page, None
                return

            try:
                items = response.json()
            except ValueError as e:
                self.logger.warning(f"[LIST] Invalid JSON from {next_url}: {e}")
                yield page, None
                return

            if not isinstance(items, list):
                items = []

            yield page, items

            # The next link already carries the query string
            next_url = response.links.get("next", {}).get("url")
            params = None
            page += 1

    def list_repositories(self, options: QueryOptions) -> ListingResult:
        """
        List every repository the query selects that the token can pull.

        A failed page does not raise: the records gathered so far are
        returned with ``truncated`` set.
        """
        result = ListingResult()

        if options.account_type is AccountType.AUTHENTICATED and not options.affiliation:
            self.logger.warning(
                "[LIST] Every affiliation is disabled, no repositories to list"
            )
            return result

        url = f"{self.api_url}{options.endpoint()}"
        seen = set()

        for page, items in self.iter_pages(url, options.params()):
            if items is None:
                result.truncated = True
                break

            result.pages = page
            if not items:
                self.logger.debug("[LIST] No repositories found")
                continue

            self.logger.debug(f"[LIST] Got {len(items)} repositories on page {page}")
            kept = 0
            for item in items:
                permissions = item.get("permissions")
                if permissions is not None and not permissions.get("pull"):
                    self.logger.debug(
                        f"[LIST] No pull right on repository {item.get('full_name')}, skipping it"
                    )
                    result.dropped.append(item.get("full_name") or item.get("name"))
                    continue
                if item["full_name"] in seen:
                    # Offset pagination repeats a record when the listing shifts
                    self.logger.debug(
                        f"[LIST] Repository {item['full_name']} listed twice, keeping the first"
                    )
                    continue
                seen.add(item["full_name"])
                result.records.append(self._to_record(item))
                kept += 1

            if kept != len(items):
                self.logger.debug(
                    f"[LIST] User has pull right over {kept}/{len(items)} repositories"
                )

        return result

    def _to_record(self, item: Dict[str, Any]) -> RepositoryRecord:
        urls = {}
        clone_url = item.get("clone_url")
        if clone_url:
            urls["https"] = clone_url.replace("https://", f"https://{self.token}@", 1)
        if item.get("ssh_url"):
            urls["ssh"] = item["ssh_url"]

        return RepositoryRecord(
            full_name=item["full_name"],
            name=item["name"],
            private=bool(item.get("private")),
            fork=bool(item.get("fork")),
            urls=urls,
            description=item.get("description"),
        )
