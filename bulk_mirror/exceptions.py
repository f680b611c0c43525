"""
Exceptions raised by bulk-mirror

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


class BulkMirrorError(Exception):
    """Base class for errors that abort a run"""


class ConfigurationError(BulkMirrorError):
    """Invalid run configuration, raised before any repository is touched"""


class AuthenticationError(BulkMirrorError):
    """Missing, invalid or expired GitHub token"""


class GitNotFoundError(ConfigurationError):
    def __init__(self):
        super().__init__(
            "git not found. Make sure git is installed and run bulk-mirror again"
        )
