"""Helpers for summary media: embed links, table of contents, plain text."""

from __future__ import annotations

import html
import re
from typing import Optional

from models import Summary

_TAG_RE = re.compile(r"<[^>]*>?")
_WS_RE = re.compile(r"\s+")
_DRIVE_RE = re.compile(r"drive\.google\.com/file/d/([a-zA-Z0-9_-]+)")
_SPOTIFY_RE = re.compile(r"open\.spotify\.com/(track|episode)/([a-zA-Z0-9]+)")
_HEADING_RE = re.compile(r"<(h[23])\b[^>]*>(.*?)</\1\s*>", re.IGNORECASE | re.DOTALL)


def strip_html(content: str) -> str:
    """Replace tags with spaces and collapse whitespace."""
    text = _TAG_RE.sub(" ", content or "")
    return _WS_RE.sub(" ", html.unescape(text)).strip()


def google_drive_embed_url(url: str) -> Optional[str]:
    if not url:
        return None
    match = _DRIVE_RE.search(url)
    if not match:
        return None
    return f"https://drive.google.com/file/d/{match.group(1)}/preview"


def spotify_embed_url(url: str) -> Optional[str]:
    if not url:
        return None
    match = _SPOTIFY_RE.search(url)
    if not match:
        return None
    return f"https://open.spotify.com/embed/{match.group(1)}/{match.group(2)}"


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def table_of_contents(content: str) -> list[dict]:
    """h2/h3 headings in document order; h2 is level 1, h3 is level 2."""
    headings = []
    for match in _HEADING_RE.finditer(content or ""):
        text = strip_html(match.group(2))
        if not text:
            continue
        headings.append({
            "id": slugify(text),
            "text": text,
            "level": 1 if match.group(1).lower() == "h2" else 2,
        })
    return headings


def available_tabs(summary: Summary, role: str) -> list[str]:
    tabs = ["summary"]
    if summary.video:
        tabs.append("video")
    if summary.audio:
        tabs.append("podcast")
    if summary.questions or role == "admin":
        tabs.append("questions")
    return tabs
