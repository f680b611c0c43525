"""
bulk-mirror - Bulk GitHub repository mirror backup tool

Lists every repository of a GitHub user or organization, filters them,
and mirrors each one to local storage with git clone --mirror.

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

__version__ = "1.0.0"
__license__ = "Apache-2.0"
__description__ = "Bulk mirror backup of GitHub user and organization repositories"

from .filters import apply_filters, parse_parallel, resolve_query_options
from .github_client import GitHubClient
from .main import main
from .models import (
    AccountType,
    FilterFlags,
    Flag,
    QueryOptions,
    RepositoryOutcome,
    RepositoryRecord,
    RunReport,
)
from .pipeline import BackupPipeline, PipelineOptions

__all__ = [
    "AccountType",
    "BackupPipeline",
    "FilterFlags",
    "Flag",
    "GitHubClient",
    "PipelineOptions",
    "QueryOptions",
    "RepositoryOutcome",
    "RepositoryRecord",
    "RunReport",
    "apply_filters",
    "main",
    "parse_parallel",
    "resolve_query_options",
]
