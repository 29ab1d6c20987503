"""
Issue reference linking for free text.

Write path: auto_link_issue_references() turns bare identifiers (SQT-297)
into workspace URLs that render as mention chips.

Read path: strip_issue_urls(), strip_project_urls() and
strip_markdown_images() collapse rendered links back to short text before
TOON encoding. The URL shape produced by the write path must stay
recognizable by strip_issue_urls().
"""

import re
from typing import TYPE_CHECKING, Iterable, Mapping, Optional

from loguru import logger

from .config import Config

if TYPE_CHECKING:
    from .registry.registry import ShortKeyRegistry

_PH_PREFIX = "\u200b\u200bPROT"
_PH_SUFFIX = "\u200b\u200b"

# Fenced code, inline code, markdown links, bare URLs. A later pass may
# capture placeholders left by an earlier one.
_PROTECTED_SPANS = (
    re.compile(r"```[\s\S]*?```"),
    re.compile(r"`[^`]+`"),
    re.compile(r"\[[^\]]*\]\([^)]*\)"),
    re.compile(r"https?://[^\s)>\]]+"),
)

_IMAGE_PATTERN = re.compile(r"!\[[^\]]*\]\([^)]+\)")
_HEX_SUFFIX = re.compile(r"^[a-f0-9]+$")


def issue_url(url_key: str, identifier: str, host: Optional[str] = None) -> str:
    """Canonical URL for an issue identifier (team key uppercased)."""
    return f"https://{host or Config.LINEAR_HOST}/{url_key}/issue/{identifier.upper()}"


class _SpanMask:
    """Placeholder bookkeeping for one masking pass."""

    def __init__(self):
        self.originals: list[str] = []

    def protect(self, pattern: re.Pattern, text: str) -> str:
        return pattern.sub(self.hold, text)

    def hold(self, match: re.Match) -> str:
        index = len(self.originals)
        self.originals.append(match.group(0))
        return self.placeholder(index)

    def restore(self, text: str) -> str:
        """
        Put every protected span back.

        Newest placeholders go first: a span captured by a later pass can
        contain placeholders from earlier passes, which are then restored too.
        """
        for index in range(len(self.originals) - 1, -1, -1):
            text = text.replace(self.placeholder(index), self.originals[index])
        return text

    @staticmethod
    def placeholder(index: int) -> str:
        return f"{_PH_PREFIX}{index}{_PH_SUFFIX}"


def auto_link_issue_references(
    text: str,
    url_key: str,
    team_keys: Iterable[str],
    host: Optional[str] = None,
) -> str:
    """
    Replace bare issue identifiers with workspace URLs.

    Only identifiers whose team key is known are replaced. Identifiers inside
    fenced code blocks, inline code, markdown links or URLs are left alone.

    Args:
        text: Free text to transform
        url_key: Workspace URL slug (e.g. "acme")
        team_keys: Known team keys (any case)
        host: URL host (defaults to Config.LINEAR_HOST)

    Returns:
        Transformed text, or the input unchanged when text or team_keys is empty
    """
    keys = sorted({key.upper() for key in team_keys if key}, key=lambda k: (-len(k), k))
    if not text or not keys:
        return text

    mask = _SpanMask()
    masked = text
    for pattern in _PROTECTED_SPANS:
        masked = mask.protect(pattern, masked)

    team_pattern = "|".join(re.escape(key) for key in keys)
    identifier_pattern = re.compile(rf"\b({team_pattern})-(\d+)\b", re.IGNORECASE)

    replaced = 0

    def _link(match: re.Match) -> str:
        nonlocal replaced
        replaced += 1
        return issue_url(url_key, f"{match.group(1).upper()}-{match.group(2)}", host)

    masked = identifier_pattern.sub(_link, masked)
    if replaced:
        logger.debug(
            f"Auto-linked {replaced} issue reference(s), {len(mask.originals)} span(s) protected"
        )
    return mask.restore(masked)


def auto_link_with_registry(text: str, registry: Optional["ShortKeyRegistry"]) -> str:
    """
    Auto-link using the url key and team keys held by a registry.

    Returns the input unchanged when the registry is missing or has no url key.
    """
    if registry is None or not registry.url_key:
        return text
    return auto_link_issue_references(text, registry.url_key, registry.team_key_set)


# ============================================================================
# Read path
# ============================================================================


def _issue_link_patterns(host: str) -> tuple[re.Pattern, re.Pattern, re.Pattern]:
    escaped = re.escape(host)
    markdown = re.compile(
        rf"\[([^\]]*)\]\(<?https?://{escaped}/[^/]+/issue/([A-Z]+-\d+)(?:/[^)>]*)?>?\)",
        re.IGNORECASE,
    )
    bare = re.compile(
        rf"https?://{escaped}/[^/]+/issue/([A-Z]+-\d+)(?:/[^\s)>\]]*)?",
        re.IGNORECASE,
    )
    in_text = re.compile(rf"{escaped}/[^/]+/issue/([A-Z]+-\d+)", re.IGNORECASE)
    return markdown, bare, in_text


def strip_issue_urls(text: Optional[str], host: Optional[str] = None) -> Optional[str]:
    """
    Replace issue URLs with bare identifiers.

    - [SQT-297](https://host/ws/issue/SQT-297/slug) -> SQT-297
    - [https://host/ws/issue/SQT-297](<https://host/ws/issue/SQT-297>) -> SQT-297
    - https://host/ws/issue/SQT-297/some-slug -> SQT-297

    Markdown links with custom link text are preserved.
    """
    if not text:
        return text

    markdown, bare, in_text = _issue_link_patterns(host or Config.LINEAR_HOST)
    mask = _SpanMask()

    def _collapse(match: re.Match) -> str:
        link_text, identifier = match.group(1), match.group(2).upper()
        if link_text.upper() == identifier:
            return identifier
        url_match = in_text.search(link_text)
        if url_match and url_match.group(1).upper() == identifier:
            return identifier
        return mask.hold(match)

    result = markdown.sub(_collapse, text)
    result = bare.sub(lambda m: m.group(1).upper(), result)
    return mask.restore(result)


def _lookup_project_key(slug: str, slug_map: Mapping[str, str]) -> Optional[str]:
    key = slug_map.get(slug)
    if key is not None:
        return key
    hyphen = slug.rfind("-")
    if hyphen > 0:
        suffix = slug[hyphen + 1 :]
        if _HEX_SUFFIX.match(suffix):
            return slug_map.get(suffix)
    return None


def strip_project_urls(
    text: Optional[str],
    slug_map: Optional[Mapping[str, str]],
    host: Optional[str] = None,
) -> Optional[str]:
    """
    Replace project URLs with project short keys.

    Bare URLs whose slug (or its hex hash suffix) is in slug_map collapse to
    the key. Markdown links collapse only when their text is the URL itself
    or the project name; custom link text is preserved. Unknown projects are
    left untouched.
    """
    if not text or not slug_map:
        return text

    escaped = re.escape(host or Config.LINEAR_HOST)
    markdown = re.compile(
        rf"\[([^\]]*)\]\(<?(https?://{escaped}/[^/]+/project/([A-Za-z0-9-]+)(?:/[^)>]*)?)>?\)"
    )
    bare = re.compile(rf"https?://{escaped}/[^/]+/project/([A-Za-z0-9-]+)(?:/[^\s)>\]]*)?")
    mask = _SpanMask()

    def _collapse_link(match: re.Match) -> str:
        link_text, url, slug = match.group(1), match.group(2), match.group(3)
        key = _lookup_project_key(slug, slug_map)
        if key is None:
            return mask.hold(match)
        if link_text == url or slug_map.get(link_text.lower()) == key:
            return key
        return mask.hold(match)

    def _collapse_bare(match: re.Match) -> str:
        key = _lookup_project_key(match.group(1), slug_map)
        return key if key is not None else match.group(0)

    result = markdown.sub(_collapse_link, text)
    result = bare.sub(_collapse_bare, result)
    return mask.restore(result)


def strip_markdown_images(text: Optional[str]) -> Optional[str]:
    """
    Strip markdown images and append an image count.

    Example:
        "See ![screenshot](https://...) here" -> "See here [1 image]"
    """
    if not text:
        return text

    count = len(_IMAGE_PATTERN.findall(text))
    if count == 0:
        return text

    result = _IMAGE_PATTERN.sub("", text)
    result = re.sub(r" {2,}", " ", result)
    suffix = "[1 image]" if count == 1 else f"[{count} images]"
    if not result.strip():
        return suffix
    return f"{result.rstrip()} {suffix}"
