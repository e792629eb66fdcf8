"""Unit tests for gem versions."""

import pytest

from gemfetch.rubygems.version import GemVersion, InvalidVersionError


class TestGemVersionOrdering:
    """Tests for version comparison."""

    def test_trailing_zeros_are_equal(self) -> None:
        """Test that 1.0 and 1 are the same version."""
        assert GemVersion("1.0") == GemVersion("1")
        assert hash(GemVersion("1.0.0")) == hash(GemVersion("1"))

    def test_numeric_segments_compare_numerically(self) -> None:
        """Test that 2.10 sorts after 2.9."""
        assert GemVersion("2.10") > GemVersion("2.9")

    def test_prerelease_before_release(self) -> None:
        """Test that prereleases sort before their release."""
        assert GemVersion("1.0.a") < GemVersion("1.0")
        assert GemVersion("1.0.rc1") < GemVersion("1.0.0")
        assert GemVersion("1.0.a") < GemVersion("1.0.b")

    def test_sorting(self) -> None:
        """Test sorting a list of versions."""
        versions = [GemVersion(v) for v in ["1.10", "1.2", "1.2.a", "0.9"]]

        assert [str(v) for v in sorted(versions)] == ["0.9", "1.2.a", "1.2", "1.10"]


class TestGemVersionParsing:
    """Tests for version parsing."""

    def test_dash_means_prerelease(self) -> None:
        """Test that a dash introduces a prerelease part."""
        version = GemVersion("1.0-rc1")

        assert version.is_prerelease
        assert str(version) == "1.0.pre.rc1"

    def test_empty_is_zero(self) -> None:
        """Test that an empty version means 0."""
        assert GemVersion("") == GemVersion("0")
        assert GemVersion(None) == GemVersion("0")

    @pytest.mark.parametrize("text", ["1..2", "abc", "1.0 beta", ">= 1"])
    def test_malformed(self, text: str) -> None:
        """Test that malformed versions are rejected."""
        with pytest.raises(InvalidVersionError):
            GemVersion(text)


class TestReleaseAndBump:
    """Tests for release() and bump()."""

    def test_release_drops_prerelease(self) -> None:
        """Test the release form of a prerelease."""
        assert GemVersion("1.2.a").release() == GemVersion("1.2")
        assert GemVersion("1.2").release() == GemVersion("1.2")

    @pytest.mark.parametrize(
        ("version", "bumped"),
        [("2.3.1", "2.4"), ("2.3", "3"), ("2", "3"), ("1.0.a", "2")],
    )
    def test_bump(self, version: str, bumped: str) -> None:
        """Test the next significant release."""
        assert GemVersion(version).bump() == GemVersion(bumped)
