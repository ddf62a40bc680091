"""Tests for project prefix derivation."""

import pytest

from wortex.core.prefix import parse_repo_name, to_acronym, to_prefix


class TestParseRepoName:
    """Tests for parse_repo_name."""

    def test_ssh_url(self):
        assert parse_repo_name("git@github.com:user/my-project.git") == "my-project"

    def test_https_url(self):
        assert parse_repo_name("https://github.com/user/my-project.git") == "my-project"

    def test_url_without_git_suffix(self):
        assert parse_repo_name("https://github.com/user/my-project") == "my-project"

    def test_ssh_url_without_slash(self):
        assert parse_repo_name("git@host:project.git") == "project"

    def test_local_path(self):
        assert parse_repo_name("/srv/git/my_project.git") == "my_project"

    def test_empty_name_raises(self):
        with pytest.raises(ValueError):
            parse_repo_name("https://github.com/user/.git")

    def test_empty_url_raises(self):
        with pytest.raises(ValueError):
            parse_repo_name("")


class TestToAcronym:
    """Tests for to_acronym."""

    def test_hyphenated(self):
        assert to_acronym("my-project") == "mp"

    def test_mixed_separators(self):
        assert to_acronym("foo-bar_baz") == "fbb"

    def test_lowercases(self):
        assert to_acronym("Open-Orchestrator") == "oo"

    def test_no_separator_returned_unchanged(self):
        assert to_acronym("wortex") == "wortex"
        assert to_acronym("MyRepo") == "MyRepo"

    def test_empty_segments_skipped(self):
        assert to_acronym("foo--bar") == "fb"


class TestToPrefix:
    """Tests for to_prefix."""

    def test_ssh_url(self):
        assert to_prefix("git@github.com:user/my-project.git") == "mp"

    def test_single_word(self):
        assert to_prefix("https://github.com/user/wortex.git") == "wortex"
