"""
Stored GitHub credentials and token auto-discovery

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
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)


def default_config_path() -> Path:
    env_path = os.getenv("BULK_MIRROR_CONFIG")
    if env_path:
        return Path(env_path)
    config_home = Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config"))
    return config_home / "bulk-mirror" / "config.yml"


@dataclass(frozen=True)
class StoredAuth:
    token: str
    user: str


class CredentialStore:
    """YAML file holding the token saved by ``bulk-mirror login``"""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else default_config_path()

    def load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"[CONFIG] Failed to read {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False)
        os.chmod(self.path, 0o600)

    def get_auth(self) -> Optional[StoredAuth]:
        auth = self.load().get("auth") or {}
        if auth.get("token") and auth.get("user"):
            return StoredAuth(token=auth["token"], user=auth["user"])
        logger.debug("[CONFIG] No stored authentication")
        return None

    def save_auth(self, token: str, user: str):
        data = self.load()
        data["auth"] = {"token": token, "user": user}
        self._write(data)
        logger.debug(f"[CONFIG] Saved authentication for {user} to {self.path}")

    def clear_auth(self):
        data = self.load()
        data["auth"] = {}
        self._write(data)


def get_github_token(store: Optional[CredentialStore] = None) -> Optional[str]:
    """
    Discover a GitHub token.

    Priority:
    1. GITHUB_TOKEN environment variable
    2. GH_TOKEN environment variable
    3. Token saved by ``bulk-mirror login``
    4. gh CLI auth token (via `gh auth token` command)

    Returns:
        GitHub token or None if not found
    """
    token = os.getenv("GITHUB_TOKEN")
    if token:
        logger.debug("[TOKEN] GitHub token found in GITHUB_TOKEN env var")
        return token

    token = os.getenv("GH_TOKEN")
    if token:
        logger.debug("[TOKEN] GitHub token found in GH_TOKEN env var")
        return token

    auth = (store or CredentialStore()).get_auth()
    if auth:
        logger.debug(f"[TOKEN] Using stored token of {auth.user}")
        return auth.token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0 and result.stdout.strip():
            logger.info("[TOKEN] GitHub token discovered from gh CLI")
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass

    return None
