"""
Tests for destination module

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

import pytest

from bulk_mirror.destination import (
    cleanup_destination,
    default_destination,
    prepare_destination,
    should_remove_destination,
)
from bulk_mirror.exceptions import ConfigurationError


class TestShouldRemoveDestination:
    """Tests for the cleanup decision"""

    @pytest.mark.parametrize(
        "preexisted,currently_empty,expected",
        [
            (False, True, True),
            (False, False, False),
            (True, True, False),
            (True, False, False),
        ],
    )
    def test_decision(self, preexisted, currently_empty, expected):
        """Test only an empty directory created by this run is removed"""
        assert should_remove_destination(preexisted, currently_empty) is expected


class TestPrepareDestination:
    """Tests for prepare_destination function"""

    def test_creates_missing_directory(self, tmp_path):
        """Test a missing destination is created with its parents"""
        path = tmp_path / "a" / "b" / "backup"

        state = prepare_destination(path)

        assert path.is_dir()
        assert state.preexisted is False
        assert state.path == path

    def test_existing_directory(self, tmp_path):
        """Test an existing directory is reused"""
        state = prepare_destination(tmp_path)

        assert state.preexisted is True

    def test_file_is_rejected(self, tmp_path):
        """Test a file cannot be a destination"""
        path = tmp_path / "file.txt"
        path.write_text("content")

        with pytest.raises(ConfigurationError):
            prepare_destination(path)

    def test_uncreatable_path(self, tmp_path):
        """Test a path under a file cannot be created"""
        blocker = tmp_path / "file.txt"
        blocker.write_text("content")

        with pytest.raises(ConfigurationError) as exc_info:
            prepare_destination(blocker / "backup")
        assert "Cannot create" in str(exc_info.value)

    def test_default_destination(self, tmp_path):
        """Test the default destination is a timestamped directory"""
        path = default_destination(tmp_path)

        assert path.parent == tmp_path
        assert path.name.startswith("bulk-mirror-backup-")
        assert path.name.rsplit("-", 1)[1].isdigit()


class TestCleanupDestination:
    """Tests for cleanup_destination function"""

    def test_removes_empty_created_directory(self, tmp_path):
        """Test an empty directory created by the run is removed"""
        state = prepare_destination(tmp_path / "backup")

        assert cleanup_destination(state) is True
        assert not state.path.exists()

    def test_keeps_non_empty_directory(self, tmp_path):
        """Test a directory with mirrors in it is kept"""
        state = prepare_destination(tmp_path / "backup")
        (state.path / "acme").mkdir()

        assert cleanup_destination(state) is False
        assert state.path.exists()

    def test_keeps_preexisting_directory(self, tmp_path):
        """Test a directory that existed before the run is never removed"""
        path = tmp_path / "backup"
        path.mkdir()
        state = prepare_destination(path)

        assert cleanup_destination(state) is False
        assert path.exists()
