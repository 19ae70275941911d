"""Tests for the directory cache snapshot."""

import json
from pathlib import Path

import pytest

from syncwatch.client.dircache import DirCacheError, DirCacheSnapshot


class TestDirCacheSnapshot:
    """Tests for DirCacheSnapshot."""

    def test_lookups(self) -> None:
        """Should map paths to IDs and back."""
        snapshot = DirCacheSnapshot({"": "ROOT", "team/Work": "P1"})
        assert len(snapshot) == 2
        assert snapshot.get("team/Work") == "P1"
        assert snapshot.get_inv("P1") == "team/Work"
        assert snapshot.get_inv("ROOT") == ""
        assert snapshot.get_inv("missing") is None

    def test_load(self, tmp_path: Path) -> None:
        """Should load a JSON object of path -> ID."""
        cache_file = tmp_path / "dircache.json"
        cache_file.write_text(json.dumps({"docs": "P1"}))

        snapshot = DirCacheSnapshot.load(cache_file)

        assert snapshot.get_inv("P1") == "docs"

    def test_load_missing_file(self, tmp_path: Path) -> None:
        """A missing file is a DirCacheError."""
        with pytest.raises(DirCacheError):
            DirCacheSnapshot.load(tmp_path / "nope.json")

    def test_load_invalid_json(self, tmp_path: Path) -> None:
        """Invalid JSON is a DirCacheError."""
        cache_file = tmp_path / "dircache.json"
        cache_file.write_text("{not json")
        with pytest.raises(DirCacheError):
            DirCacheSnapshot.load(cache_file)

    @pytest.mark.parametrize("content", [[["docs", "P1"]], {"docs": 1}])
    def test_load_wrong_shape(self, tmp_path: Path, content: object) -> None:
        """Only objects mapping strings to strings are accepted."""
        cache_file = tmp_path / "dircache.json"
        cache_file.write_text(json.dumps(content))
        with pytest.raises(DirCacheError):
            DirCacheSnapshot.load(cache_file)
