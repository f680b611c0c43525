"""
Backup destination handling

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
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DestinationState:
    path: Path
    preexisted: bool


def default_destination(cwd: Optional[Path] = None) -> Path:
    base = cwd or Path.cwd()
    return base / f"bulk-mirror-backup-{int(time.time() * 1000)}"


def prepare_destination(path) -> DestinationState:
    """
    Make sure the destination directory exists and is writable.

    The directory is created here, once, before any clone starts. Whether it
    existed beforehand decides what an interrupted run may clean up.

    Raises:
        ConfigurationError: the path is not a usable directory
    """
    path = Path(path)

    if path.exists():
        if not path.is_dir():
            raise ConfigurationError(f"{path} exists and is not a directory")
        if not os.access(path, os.W_OK | os.X_OK):
            raise ConfigurationError(f"Cannot write to {path}")
        logger.debug(f"[CONFIG] Destination path {path} exists")
        return DestinationState(path=path, preexisted=True)

    try:
        path.mkdir(parents=True, exist_ok=False)
    except OSError as e:
        logger.debug(f"[ERROR] Failed to create {path}: {e}")
        raise ConfigurationError(f"Cannot create {path}") from e

    logger.info(f"[CONFIG] Created backup directory: {path}")
    return DestinationState(path=path, preexisted=False)


def is_empty_directory(path: Path) -> bool:
    try:
        return not any(path.iterdir())
    except FileNotFoundError:
        return True


def should_remove_destination(preexisted: bool, currently_empty: bool) -> bool:
    return not preexisted and currently_empty


def cleanup_destination(state: DestinationState) -> bool:
    """Remove a destination this run created if nothing was written to it"""
    if not state.path.exists():
        return False

    if should_remove_destination(state.preexisted, is_empty_directory(state.path)):
        try:
            state.path.rmdir()
        except OSError as e:
            logger.warning(f"[CLEANUP] Failed to remove {state.path}: {e}")
            return False
        logger.info(f"[CLEANUP] Removed empty backup directory: {state.path}")
        return True

    logger.info(f"[CLEANUP] Keeping backup directory: {state.path}")
    return False
