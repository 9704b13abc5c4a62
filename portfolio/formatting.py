"""
Pure text helpers used by the editor flows: description formatting, list
fields, rich-text plain rendering and video embeds.
"""

from __future__ import annotations

import html
import re

from bs4 import BeautifulSoup

NUMBERED_ITEM = re.compile(r"^\d+\.\s")
YOUTUBE_ID = re.compile(
    r"(?:youtube\.com/(?:watch\?v=|embed/)|youtu\.be/)([A-Za-z0-9_-]{6,})"
)
MP4_LINK = re.compile(r"\.mp4(\?|$)", re.IGNORECASE)
VIMEO_ID = re.compile(r"vimeo\.com/(\d+)")
BLOCK_TAGS = ("p", "div", "li", "ul", "ol", "h1", "h2", "h3", "h4", "h5", "h6", "blockquote")


def format_description(text: str) -> str:
    """
    Convert a plain-text project description into HTML.

    Lines starting with ``"- "`` become ``<ul>`` items, lines starting with
    ``"1. "`` (any number) become ``<ol>`` items, blank lines separate
    paragraphs and any other line is inline text followed by ``<br>``.
    Feeding the output back in is not supported; keep the plain text around
    for re-editing.
    """
    if not text:
        return ""

    lines = text.split("\n")
    parts = ["<p>"]
    in_paragraph = True
    list_type = None

    for index, raw_line in enumerate(lines):
        line = raw_line.strip()

        if not line:
            if list_type:
                parts.append(f"</{list_type}>")
                list_type = None
            if index < len(lines) - 1:
                if in_paragraph:
                    parts.append("</p>")
                parts.append("<p>")
                in_paragraph = True
            continue

        if line.startswith("- "):
            item_type, item = "ul", line[2:]
        elif NUMBERED_ITEM.match(line):
            item_type, item = "ol", NUMBERED_ITEM.sub("", line, count=1)
        else:
            item_type, item = None, line

        if item_type:
            if list_type is None:
                if in_paragraph:
                    parts.append("</p>")
                    in_paragraph = False
                parts.append(f"<{item_type}>")
            elif list_type != item_type:
                parts.append(f"</{list_type}><{item_type}>")
            list_type = item_type
            parts.append(f"<li>{item}</li>")
            continue

        if list_type:
            parts.append(f"</{list_type}>")
            list_type = None
        if not in_paragraph:
            parts.append("<p>")
            in_paragraph = True
        parts.append(f"{item}<br>")

    if list_type:
        parts.append(f"</{list_type}>")
    if in_paragraph:
        parts.append("</p>")

    result = "".join(parts)
    result = result.replace("<p></p>", "")
    result = result.replace("<p><br>", "<p>").replace("<br></p>", "</p>")
    return result.replace("<p></p>", "")


def lines_to_list(text: str | None) -> list[str]:
    """Split a newline-delimited textbox into trimmed, non-empty entries."""
    if not text:
        return []
    return [line.strip() for line in text.splitlines() if line.strip()]


def html_to_text(markup: str | None) -> str:
    """Rendered plain text of a rich-text surface's HTML."""
    if not markup:
        return ""
    soup = BeautifulSoup(markup, "html.parser")
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for block in soup.find_all(BLOCK_TAGS):
        block.append("\n")
    text = soup.get_text()
    lines = [line.strip() for line in text.splitlines()]
    collapsed = re.sub(r"\n{3,}", "\n\n", "\n".join(lines))
    return collapsed.strip()


def create_video_embed(url: str | None, height: int = 210) -> str:
    """
    Return an HTML embed for a video link.

    YouTube and Vimeo links become player iframes, direct ``.mp4`` links a
    native ``<video>`` element, anything else an outbound link. Empty input
    returns an empty string.
    """
    if not url or not url.strip():
        return ""
    link = url.strip()
    src = html.escape(link, quote=True)

    youtube = YOUTUBE_ID.search(link)
    if youtube:
        return (
            '<div class="video-embed" style="width:100%;">'
            f'<iframe width="100%" height="{height}" '
            f'src="https://www.youtube.com/embed/{youtube.group(1)}" frameborder="0" '
            'allow="accelerometer; autoplay; clipboard-write; encrypted-media; '
            'gyroscope; picture-in-picture" allowfullscreen></iframe></div>'
        )

    if MP4_LINK.search(link):
        return (
            '<div class="video-embed" style="width:100%;">'
            f'<video controls style="width:100%; max-height:{height}px;" src="{src}">'
            f'<source src="{src}" type="video/mp4">'
            "Your browser does not support the video tag.</video></div>"
        )

    vimeo = VIMEO_ID.search(link)
    if vimeo:
        return (
            '<div class="video-embed" style="width:100%;">'
            f'<iframe width="100%" height="{height}" '
            f'src="https://player.vimeo.com/video/{vimeo.group(1)}" frameborder="0" '
            'allow="autoplay; fullscreen; picture-in-picture" allowfullscreen>'
            "</iframe></div>"
        )

    return (
        '<div class="video-embed">'
        f'<a href="{src}" target="_blank" rel="noopener noreferrer">Open video</a>'
        "</div>"
    )
