"""Structured article document.

Providers answer in a loose markdown layout. This module maps that text onto
`MasterArticleDocument`, writes the canonical text form back out (used for
translation chunking and stored next to the rendered HTML), and renders the
HTML that is published.
"""

from dataclasses import dataclass, field
import hashlib
import html
import re

from bs4 import BeautifulSoup

from autopress.exceptions import ParseFailure

INTRO_HEADING = "Introduction"
FAQ_HEADING = "Frequently Asked Questions"
SUMMARY_HEADING = "Key Takeaways"
RESOURCES_HEADING = "External Resources"
META_LABEL = "**Meta Description:**"
KEYWORDS_LABEL = "**Keywords:**"

WORDS_PER_MINUTE = 200
META_TITLE_LIMIT = 60

_RESERVED_HEADINGS = {
    "introduction": "intro",
    "frequently asked questions": "faq",
    "faq": "faq",
    "faqs": "faq",
    "key takeaways": "summary",
    "external resources": "links",
}

_TITLE_RE = re.compile(r"^#\s+(.+?)\s*$")
_H2_RE = re.compile(r"^##\s+(.+?)\s*$")
_H3_RE = re.compile(r"^###\s+(.+?)\s*$")
_LINK_RE = re.compile(r"^[-*]\s*\[(.+?)\]\((\S+?)\)")
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")


@dataclass
class Section:
    heading: str
    body: str


@dataclass
class FaqEntry:
    q: str
    a: str


@dataclass
class ExternalLink:
    anchor: str
    url: str


@dataclass
class MasterArticleDocument:
    """An article before persistence, in any language."""

    title: str
    meta_description: str
    intro: str
    sections: list[Section] = field(default_factory=list)
    summary: str = ""
    faq: list[FaqEntry] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    external_links: list[ExternalLink] = field(default_factory=list)


@dataclass(frozen=True)
class DocumentSkeleton:
    section_count: int
    faq_count: int
    keyword_count: int
    has_summary: bool


def skeleton(doc: MasterArticleDocument) -> DocumentSkeleton:
    return DocumentSkeleton(
        section_count=len(doc.sections),
        faq_count=len(doc.faq),
        keyword_count=len(doc.keywords),
        has_summary=bool(doc.summary),
    )


# ---------------------------------------------------------------------------
# Canonical text form
# ---------------------------------------------------------------------------


def _heading_block(heading: str, body: str, level: int = 2) -> str:
    marker = "#" * level
    return f"{marker} {heading}\n\n{body}" if body else f"{marker} {heading}"


def serialize(doc: MasterArticleDocument) -> str:
    """Write the canonical markdown form of a document."""
    blocks = [f"# {doc.title}"]
    if doc.meta_description:
        blocks.append(f"{META_LABEL} {doc.meta_description}")
    blocks.append(_heading_block(INTRO_HEADING, doc.intro))
    for section in doc.sections:
        blocks.append(_heading_block(section.heading, section.body))
    if doc.faq:
        blocks.append(f"## {FAQ_HEADING}")
        for entry in doc.faq:
            blocks.append(_heading_block(entry.q, entry.a, level=3))
    if doc.summary:
        blocks.append(_heading_block(SUMMARY_HEADING, doc.summary))
    if doc.keywords:
        blocks.append(f"{KEYWORDS_LABEL} {', '.join(doc.keywords)}")
    if doc.external_links:
        items = "\n".join(f"- [{link.anchor}]({link.url})" for link in doc.external_links)
        blocks.append(f"## {RESOURCES_HEADING}\n\n{items}")
    return "\n\n".join(blocks) + "\n"


def strip_code_fence(text: str) -> str:
    """Remove a ```markdown fence some providers wrap the whole answer in."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
    return cleaned


def _join(lines: list[str]) -> str:
    return "\n".join(lines).strip()


def parse(text: str) -> MasterArticleDocument:
    """
    Map provider text onto a document.

    Raises ParseFailure when the title, introduction or content sections are
    missing. Nothing is filled in from defaults.
    """
    title = ""
    meta = ""
    keywords: list[str] = []
    preamble: list[str] = []
    intro: list[str] = []
    summary: list[str] = []
    links: list[str] = []
    sections: list[tuple[str, list[str]]] = []
    faq: list[tuple[str, list[str]]] = []

    mode = "preamble"
    buffer = preamble

    for raw in strip_code_fence(text).splitlines():
        line = raw.rstrip()
        stripped = line.strip()

        if mode == "preamble" and not title:
            match = _TITLE_RE.match(stripped)
            if match and not stripped.startswith("##"):
                title = match.group(1).strip()
                continue

        if stripped.startswith(META_LABEL):
            meta = stripped[len(META_LABEL):].strip()
            continue

        if stripped.startswith(KEYWORDS_LABEL):
            raw_keywords = stripped[len(KEYWORDS_LABEL):].split(",")
            keywords = [keyword.strip() for keyword in raw_keywords if keyword.strip()]
            mode, buffer = "trailer", []
            continue

        match = _H2_RE.match(stripped)
        if match and not stripped.startswith("###"):
            heading = match.group(1).strip()
            kind = _RESERVED_HEADINGS.get(heading.lower(), "section")
            if kind == "intro":
                buffer = intro
            elif kind == "faq":
                buffer = []
            elif kind == "summary":
                buffer = summary
            elif kind == "links":
                buffer = links
            else:
                buffer = []
                sections.append((heading, buffer))
            mode = kind
            continue

        if mode == "faq":
            match = _H3_RE.match(stripped)
            if match:
                buffer = []
                faq.append((match.group(1).strip(), buffer))
                continue

        buffer.append(line)

    doc = MasterArticleDocument(
        title=title,
        meta_description=meta,
        intro=_join(intro) or _join(preamble),
        sections=[Section(heading=heading, body=_join(body)) for heading, body in sections],
        summary=_join(summary),
        faq=[FaqEntry(q=question, a=_join(answer)) for question, answer in faq],
        keywords=keywords,
        external_links=[
            ExternalLink(anchor=match.group(1).strip(), url=match.group(2))
            for match in (_LINK_RE.match(line.strip()) for line in links)
            if match
        ],
    )

    if not doc.title:
        raise ParseFailure("response has no '# Title' line")
    if not doc.intro:
        raise ParseFailure("response has no introduction", title=doc.title)
    if not doc.sections:
        raise ParseFailure("response has no content sections", title=doc.title)
    return doc


# ---------------------------------------------------------------------------
# HTML
# ---------------------------------------------------------------------------


def _inline(text: str) -> str:
    return _BOLD_RE.sub(r"<strong>\1</strong>", html.escape(text, quote=False))


def _blocks_to_html(text: str) -> str:
    out = []
    for block in re.split(r"\n\s*\n", text.strip()):
        lines = [line.strip() for line in block.splitlines() if line.strip()]
        if not lines:
            continue
        if all(line[:2] in ("- ", "* ") for line in lines):
            items = "".join(f"<li>{_inline(line[2:].strip())}</li>" for line in lines)
            out.append(f"<ul>{items}</ul>")
        elif lines[0].startswith("### "):
            out.append(f"<h3>{_inline(lines[0][4:].strip())}</h3>")
            if lines[1:]:
                out.append(f"<p>{_inline(' '.join(lines[1:]))}</p>")
        else:
            out.append(f"<p>{_inline(' '.join(lines))}</p>")
    return "\n".join(out)


def render_html(doc: MasterArticleDocument) -> str:
    """Render the publishable article body."""
    parts = [f'<div class="intro">\n{_blocks_to_html(doc.intro)}\n</div>']
    for section in doc.sections:
        parts.append(f"<h2>{_inline(section.heading)}</h2>\n{_blocks_to_html(section.body)}")
    if doc.faq:
        entries = "\n".join(
            f"<h3>{_inline(entry.q)}</h3>\n{_blocks_to_html(entry.a)}" for entry in doc.faq
        )
        parts.append(f'<section class="faq">\n<h2>{FAQ_HEADING}</h2>\n{entries}\n</section>')
    if doc.summary:
        parts.append(
            f'<section class="key-takeaways">\n<h2>{SUMMARY_HEADING}</h2>\n'
            f"{_blocks_to_html(doc.summary)}\n</section>"
        )
    if doc.external_links:
        items = "".join(
            f'<li><a href="{html.escape(link.url)}" rel="noopener nofollow" target="_blank">'
            f"{html.escape(link.anchor)}</a></li>"
            for link in doc.external_links
        )
        parts.append(
            f'<section class="external-resources">\n<h2>{RESOURCES_HEADING}</h2>\n<ul>{items}</ul>\n</section>'
        )
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Derived fields
# ---------------------------------------------------------------------------


def estimate_reading_time(content_html: str) -> int:
    """Minutes at 200 words per minute, never less than one."""
    text = BeautifulSoup(content_html, "lxml").get_text(" ")
    return max(1, round(len(text.split()) / WORDS_PER_MINUTE))


def content_hash(title: str, content: str, language_code: str = "") -> str:
    return hashlib.sha256(f"{content}{title}{language_code}".encode("utf-8")).hexdigest()


def meta_title(title: str) -> str:
    if len(title) <= META_TITLE_LIMIT:
        return title
    return title[: META_TITLE_LIMIT - 3].rstrip() + "..."


def to_slug(text: str, max_length: int = 80) -> str:
    """Lowercase, url-safe slug. Falls back to 'article' for empty input."""
    slug = text.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug.strip())
    slug = re.sub(r"-+", "-", slug).strip("-")
    slug = slug[:max_length].rstrip("-")
    return slug or "article"


def translation_slug(master_slug: str, language_code: str) -> str:
    """Deterministic slug of a translation, checkable without fetching content."""
    return f"{master_slug}-{language_code.lower()}"
