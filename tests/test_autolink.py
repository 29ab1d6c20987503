"""Tests for issue auto-linking and the read-path strip transforms."""

import pytest

from linear_toon.autolink import (
    auto_link_issue_references,
    auto_link_with_registry,
    issue_url,
    strip_issue_urls,
    strip_markdown_images,
    strip_project_urls,
)

URL = "https://linear.app/acme/issue"


class TestAutoLink:
    """Bare identifiers become URLs; protected spans are left alone."""

    def test_links_bare_identifier(self):
        result = auto_link_issue_references("Fixes SQT-297 today", "acme", ["SQT"])
        assert result == f"Fixes {URL}/SQT-297 today"

    def test_case_insensitive_match_uppercases_team(self):
        result = auto_link_issue_references("see sqt-12", "acme", ["sqt"])
        assert result == f"see {URL}/SQT-12"

    def test_only_known_teams_linked(self):
        result = auto_link_issue_references("SQT-1 and ENG-2", "acme", ["SQT"])
        assert result == f"{URL}/SQT-1 and ENG-2"

    def test_word_boundaries_respected(self):
        text = "xSQT-1 and SQT-2a and SQT-3"
        result = auto_link_issue_references(text, "acme", ["SQT"])
        assert result == f"xSQT-1 and SQT-2a and {URL}/SQT-3"

    def test_longer_team_key_wins(self):
        """SQTX-1 must not be linked as SQT."""
        result = auto_link_issue_references("SQTX-1 SQT-2", "acme", ["SQT", "SQTX"])
        assert result == f"{URL}/SQTX-1 {URL}/SQT-2"

    def test_fenced_code_protected(self):
        text = "Before SQT-1\n```\nSQT-2 in code\n```\nafter"
        result = auto_link_issue_references(text, "acme", ["SQT"])
        assert result == f"Before {URL}/SQT-1\n```\nSQT-2 in code\n```\nafter"

    def test_inline_code_protected(self):
        result = auto_link_issue_references("run `fix SQT-1` then SQT-2", "acme", ["SQT"])
        assert result == f"run `fix SQT-1` then {URL}/SQT-2"

    def test_markdown_link_protected(self):
        text = "[SQT-1](https://example.com/x) and SQT-2"
        result = auto_link_issue_references(text, "acme", ["SQT"])
        assert result == f"[SQT-1](https://example.com/x) and {URL}/SQT-2"

    def test_existing_url_protected(self):
        text = f"{URL}/SQT-1 already linked"
        assert auto_link_issue_references(text, "acme", ["SQT"]) == text

    def test_empty_inputs_unchanged(self):
        assert auto_link_issue_references("", "acme", ["SQT"]) == ""
        assert auto_link_issue_references("SQT-1", "acme", []) == "SQT-1"

    def test_no_identifiers_unchanged(self):
        text = "Nothing to see `here` [link](https://example.com)"
        assert auto_link_issue_references(text, "acme", ["SQT"]) == text

    def test_custom_host(self):
        result = auto_link_issue_references("SQT-1", "acme", ["SQT"], host="linear.example.org")
        assert result == "https://linear.example.org/acme/issue/SQT-1"

    def test_placeholder_lookalike_preserved(self):
        """Text that already contains a placeholder-shaped token is not corrupted."""
        text = "odd \u200b\u200bPROT7\u200b\u200b token SQT-1"
        result = auto_link_issue_references(text, "acme", ["SQT"])
        assert result == f"odd \u200b\u200bPROT7\u200b\u200b token {URL}/SQT-1"

    def test_placeholder_lookalike_with_protected_spans(self):
        text = "`code` then \u200b\u200bPROT9\u200b\u200b and SQT-1"
        result = auto_link_issue_references(text, "acme", ["SQT"])
        assert result == f"`code` then \u200b\u200bPROT9\u200b\u200b and {URL}/SQT-1"


class TestNestedProtectedSpans:
    """Spans captured inside other protected spans come back intact."""

    def test_inline_code_as_link_text(self):
        text = "See [`SQT-1`](https://example.com/x) and SQT-2"
        result = auto_link_issue_references(text, "acme", ["SQT"])
        assert result == f"See [`SQT-1`](https://example.com/x) and {URL}/SQT-2"

    def test_inline_code_inside_link_text(self):
        text = "`a` [x `b` y](http://e.com) SQT-3"
        result = auto_link_issue_references(text, "acme", ["SQT"])
        assert result == f"`a` [x `b` y](http://e.com) {URL}/SQT-3"
        assert "\u200b" not in result

    def test_url_inside_inline_code(self):
        text = "run `curl https://api.example.com/SQT-1` for SQT-2"
        result = auto_link_issue_references(text, "acme", ["SQT"])
        assert result == f"run `curl https://api.example.com/SQT-1` for {URL}/SQT-2"

    def test_link_inside_fenced_block(self):
        text = "```\n[SQT-1](https://example.com) `SQT-2`\n```\nSQT-3"
        result = auto_link_issue_references(text, "acme", ["SQT"])
        assert result == f"```\n[SQT-1](https://example.com) `SQT-2`\n```\n{URL}/SQT-3"

    def test_many_spans_restore_in_place(self):
        """Eleven spans: placeholder 1 must not clobber placeholder 10."""
        spans = " ".join(f"`c{i}`" for i in range(11))
        text = f"{spans} [`c11`](https://example.com) SQT-1"
        result = auto_link_issue_references(text, "acme", ["SQT"])
        assert result == f"{spans} [`c11`](https://example.com) {URL}/SQT-1"

    def test_nested_spans_survive_issue_url_strip(self):
        text = f"[`SQT-1` notes]({URL}/SQT-1) and `x`"
        assert strip_issue_urls(text) == text


class TestRegistryLinking:
    def test_with_registry(self, registry):
        assert auto_link_with_registry("See SQM-4", registry) == f"See {URL}/SQM-4"

    def test_with_registry_degrades_without_url_key(self, build_data):
        from linear_toon.registry.registry import ShortKeyRegistry

        build_data.url_key = None
        registry = ShortKeyRegistry.build(build_data)
        assert auto_link_with_registry("See SQT-1", registry) == "See SQT-1"
        assert auto_link_with_registry("See SQT-1", None) == "See SQT-1"

    def test_issue_url(self):
        assert issue_url("acme", "sqt-9") == f"{URL}/SQT-9"


class TestStripIssueUrls:
    """Rendered issue links collapse back to bare identifiers."""

    def test_bare_url_with_slug(self):
        assert strip_issue_urls(f"See {URL}/SQT-297/fix-the-thing now") == "See SQT-297 now"

    def test_markdown_link_with_identifier_text(self):
        assert strip_issue_urls(f"[SQT-297]({URL}/SQT-297/slug)") == "SQT-297"

    def test_markdown_link_with_url_text(self):
        text = f"[{URL}/SQT-297](<{URL}/SQT-297>)"
        assert strip_issue_urls(text) == "SQT-297"

    def test_custom_link_text_preserved(self):
        text = f"[the login bug]({URL}/SQT-297)"
        assert strip_issue_urls(text) == text

    def test_empty_and_none(self):
        assert strip_issue_urls("") == ""
        assert strip_issue_urls(None) is None

    @pytest.mark.parametrize(
        "text",
        [
            "Blocked by SQT-1.",
            "SQT-1, SQM-22 and SQT-333",
            "Multi\nline SQT-4\n- SQM-5",
        ],
    )
    def test_strip_inverts_auto_link(self, text):
        """strip_issue_urls(auto_link(x)) == x for uppercase identifiers."""
        linked = auto_link_issue_references(text, "acme", ["SQT", "SQM"])
        assert linked != text
        assert strip_issue_urls(linked) == text


class TestStripProjectUrls:
    """Project URLs collapse to project short keys."""

    PROJECT_URL = "https://linear.app/acme/project"

    def test_bare_url_by_slug(self, registry):
        text = f"Part of {self.PROJECT_URL}/q1-launch-878d2a8b5972 effort"
        assert strip_project_urls(text, registry.project_slug_map()) == "Part of pr1 effort"

    def test_bare_url_by_hash_suffix(self, registry):
        text = f"{self.PROJECT_URL}/renamed-launch-878d2a8b5972/overview"
        assert strip_project_urls(text, registry.project_slug_map()) == "pr1"

    def test_named_markdown_link(self, registry):
        text = f"[Q1 Launch]({self.PROJECT_URL}/878d2a8b5972)"
        assert strip_project_urls(text, registry.project_slug_map()) == "pr1"

    def test_custom_link_text_preserved(self, registry):
        text = f"[our big push]({self.PROJECT_URL}/878d2a8b5972)"
        assert strip_project_urls(text, registry.project_slug_map()) == text

    def test_unknown_project_untouched(self, registry):
        text = f"{self.PROJECT_URL}/other-deadbeef"
        assert strip_project_urls(text, registry.project_slug_map()) == text

    def test_no_slug_map_is_noop(self):
        text = f"{self.PROJECT_URL}/q1-launch-878d2a8b5972"
        assert strip_project_urls(text, None) == text
        assert strip_project_urls(text, {}) == text


class TestStripMarkdownImages:
    def test_single_image(self):
        assert strip_markdown_images("See ![shot](https://x/a.png) here") == "See here [1 image]"

    def test_multiple_images(self):
        text = "![a](https://x/a.png)\nText ![b](https://x/b.png)"
        assert strip_markdown_images(text).endswith("[2 images]")

    def test_only_images(self):
        assert strip_markdown_images("![a](https://x/a.png)") == "[1 image]"

    def test_no_images_unchanged(self):
        assert strip_markdown_images("plain [link](https://x)") == "plain [link](https://x)"
