"""Tests for SKILL.md frontmatter parsing."""

from __future__ import annotations

from influxion.client.sync.frontmatter import openclaw_metadata, parse_frontmatter, split_frontmatter


class TestSplitFrontmatter:
    """Tests for split_frontmatter()."""

    def test_with_frontmatter(self) -> None:
        fm, body = split_frontmatter("---\nname: x\n---\n# Title\n")
        assert fm == "name: x\n"
        assert body == "# Title\n"

    def test_without_frontmatter(self) -> None:
        assert split_frontmatter("# Title\n") == (None, "# Title\n")

    def test_unterminated(self) -> None:
        text = "---\nname: x\n# Title\n"
        assert split_frontmatter(text) == (None, text)

    def test_indented_opening_fence(self) -> None:
        """The opening fence must start at column 0."""
        text = "  ---\nname: x\n---\n# Title\n"
        assert split_frontmatter(text) == (None, text)

    def test_crlf_fences(self) -> None:
        fm, body = split_frontmatter("---\r\nname: x\r\n---\r\nBody\r\n")
        assert fm == "name: x\r\n"
        assert body == "Body\r\n"


class TestParseFrontmatter:
    """Tests for parse_frontmatter()."""

    def test_mapping(self) -> None:
        text = "---\nname: github\ndescription: GitHub helper\nmetadata:\n  version: '1.2'\n---\nBody\n"
        assert parse_frontmatter(text) == {
            "name": "github",
            "description": "GitHub helper",
            "metadata": {"version": "1.2"},
        }

    def test_invalid_yaml(self) -> None:
        """Invalid YAML should degrade to an empty mapping."""
        assert parse_frontmatter("---\nname: [unclosed\n---\nBody\n") == {}

    def test_non_mapping(self) -> None:
        assert parse_frontmatter("---\n- a\n- b\n---\n") == {}

    def test_absent(self) -> None:
        assert parse_frontmatter("Just a body") == {}


class TestOpenclawMetadata:
    """Tests for openclaw_metadata()."""

    def test_present(self) -> None:
        fm = {"metadata": {"openclaw": {"always": True}}}
        assert openclaw_metadata(fm) == {"always": True}

    def test_absent(self) -> None:
        assert openclaw_metadata({}) == {}
        assert openclaw_metadata({"metadata": "text"}) == {}
        assert openclaw_metadata({"metadata": {"openclaw": []}}) == {}
