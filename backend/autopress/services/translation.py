"""Chunked translation engine.

A document is translated as a sequence of contiguous slices of its canonical
text. Slices are cut at heading boundaries where possible, translated one at
a time in order, and glued back together. The result must have the same
skeleton as the source or the whole document is retried as a single chunk.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging
import re

from autopress.exceptions import InvalidChunkCount, ParseFailure, StructuralMismatch
from autopress.services.document import (
    FAQ_HEADING,
    INTRO_HEADING,
    KEYWORDS_LABEL,
    META_LABEL,
    RESOURCES_HEADING,
    SUMMARY_HEADING,
    MasterArticleDocument,
    parse,
    serialize,
    skeleton,
)

logger = logging.getLogger(__name__)

MIN_CHUNKS = 0
MAX_CHUNKS = 10

_SECTION_RE = re.compile(r"^##[ \t]", re.MULTILINE)
_SUBSECTION_RE = re.compile(r"^###[ \t]", re.MULTILINE)

# Literal markers downstream rendering depends on. They are swapped for
# opaque tokens before a chunk is sent and swapped back afterwards.
_PROTECTED_MARKERS = (
    (f"## {FAQ_HEADING}", "## [[AP:FAQ]]"),
    (f"## {INTRO_HEADING}", "## [[AP:INTRO]]"),
    (f"## {SUMMARY_HEADING}", "## [[AP:TAKEAWAYS]]"),
    (f"## {RESOURCES_HEADING}", "## [[AP:RESOURCES]]"),
    (META_LABEL, "[[AP:META]]"),
    (KEYWORDS_LABEL, "[[AP:KEYWORDS]]"),
)


def validate_chunk_count(value: object) -> int:
    """Accept integers in [0, 10]. 0 means automatic sizing."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidChunkCount(value)
    if not MIN_CHUNKS <= value <= MAX_CHUNKS:
        raise InvalidChunkCount(value)
    return value


# ---------------------------------------------------------------------------
# Splitting
# ---------------------------------------------------------------------------


def _boundaries(text: str, pattern: re.Pattern[str]) -> list[int]:
    return [match.start() for match in pattern.finditer(text) if match.start() > 0]


def _cut(text: str, offsets: list[int]) -> list[str]:
    edges = [0, *offsets, len(text)]
    return [text[start:end] for start, end in zip(edges, edges[1:])]


def _break_point(text: str, upper: int, lower: int) -> int:
    """Offset in (0, len(text)) to split at, preferring paragraph, line, then word breaks."""
    for separator in ("\n\n", "\n", " "):
        index = text.rfind(separator, lower, upper)
        if index >= 0 and 0 < index + len(separator) < len(text):
            return index + len(separator)
    return min(max(upper, 1), len(text) - 1)


def _split_by_length(segment: str, max_chars: int) -> list[str]:
    pieces = []
    rest = segment
    while len(rest) > max_chars:
        cut = _break_point(rest, max_chars, max_chars // 2)
        pieces.append(rest[:cut])
        rest = rest[cut:]
    pieces.append(rest)
    return pieces


def _balanced_cuts(text: str, candidates: list[int], count: int) -> list[int]:
    """Pick count - 1 offsets from candidates so slices come out close to equal length."""
    cuts: list[int] = []
    previous = 0
    for index in range(1, count):
        target = len(text) * index / count
        still_needed = count - 1 - index
        usable = [offset for offset in candidates if offset > previous]
        if still_needed:
            usable = usable[: len(usable) - still_needed]
        best = min(usable, key=lambda offset: abs(offset - target))
        cuts.append(best)
        previous = best
    return cuts


def _split_auto(text: str, max_chars: int) -> list[str]:
    if len(text) <= max_chars:
        return [text]

    pieces: list[str] = []
    for segment in _cut(text, _boundaries(text, _SECTION_RE)):
        pieces.extend(_split_by_length(segment, max_chars) if len(segment) > max_chars else [segment])

    chunks: list[str] = []
    current = ""
    for piece in pieces:
        if current and len(current) + len(piece) > max_chars:
            chunks.append(current)
            current = ""
        current += piece
    if current:
        chunks.append(current)
    return chunks


def _split_forced(text: str, count: int) -> list[str]:
    if count == 1:
        return [text]

    sections = _boundaries(text, _SECTION_RE)
    if len(sections) >= count - 1:
        return _cut(text, _balanced_cuts(text, sections, count))

    headings = sorted(set(sections) | set(_boundaries(text, _SUBSECTION_RE)))
    if len(headings) >= count - 1:
        return _cut(text, _balanced_cuts(text, headings, count))

    # Not enough headings: halve the largest slice until the count is reached.
    pieces = _cut(text, headings)
    while len(pieces) < count:
        largest = max(range(len(pieces)), key=lambda index: len(pieces[index]))
        piece = pieces[largest]
        if len(piece) < 2:
            break
        middle = _break_point(piece, (3 * len(piece)) // 4, len(piece) // 4)
        pieces[largest : largest + 1] = [piece[:middle], piece[middle:]]
    return pieces


def split_text(text: str, chunk_count: int, max_chunk_chars: int) -> list[str]:
    count = validate_chunk_count(chunk_count)
    if count == 0:
        return _split_auto(text, max(1, max_chunk_chars))
    return _split_forced(text, count)


def split_document(doc: MasterArticleDocument, chunk_count: int, max_chunk_chars: int) -> list[str]:
    """
    Split the canonical serialization of a document.

    0 sizes chunks automatically so each stays under max_chunk_chars where
    possible. k > 0 returns exactly k contiguous chunks.
    """
    return split_text(serialize(doc), chunk_count, max_chunk_chars)


def join_chunks(chunks: list[str]) -> str:
    return "".join(chunks)


def protect_markers(text: str) -> str:
    for marker, token in _PROTECTED_MARKERS:
        text = text.replace(marker, token)
    return text


def restore_markers(text: str) -> str:
    for marker, token in _PROTECTED_MARKERS:
        text = text.replace(token, marker)
    return text


def _keep_edges(source: str, translated: str) -> str:
    """Reapply the source chunk's leading and trailing whitespace."""
    lead = source[: len(source) - len(source.lstrip())]
    trail = source[len(source.rstrip()) :]
    return f"{lead}{translated.strip()}{trail}"


def check_structure(source: MasterArticleDocument, translated: MasterArticleDocument) -> None:
    expected = skeleton(source)
    actual = skeleton(translated)
    if expected != actual:
        raise StructuralMismatch(expected, actual)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


@dataclass
class ChunkTranslation:
    """One translated chunk as returned by the provider layer."""
    text: str
    tokens_in: int = 0
    tokens_out: int = 0
    model: str | None = None


@dataclass
class EngineResult:
    doc: MasterArticleDocument
    tokens_in: int
    tokens_out: int
    chunk_count_used: int
    chunks_sent: int
    model: str | None = None


TranslateChunk = Callable[[str], Awaitable[ChunkTranslation]]


class ChunkedTranslator:
    """Drives split -> translate each chunk -> join -> parse -> structural check."""

    def __init__(self, max_chunk_chars: int = 6000) -> None:
        self.max_chunk_chars = max_chunk_chars

    async def translate(
        self,
        doc: MasterArticleDocument,
        chunk_count: int,
        translate_chunk: TranslateChunk,
    ) -> EngineResult:
        count = validate_chunk_count(chunk_count)
        spent_in = spent_out = 0
        try:
            return await self._attempt(doc, count, translate_chunk)
        except (StructuralMismatch, ParseFailure) as exc:
            spent_in, spent_out = getattr(exc, "spent_tokens", (0, 0))
            logger.warning(
                "Translation with %s chunk(s) failed structural check (%s); retrying as one chunk",
                count,
                exc,
            )

        result = await self._attempt(doc, 1, translate_chunk)
        result.tokens_in += spent_in
        result.tokens_out += spent_out
        return result

    async def _attempt(
        self,
        doc: MasterArticleDocument,
        count: int,
        translate_chunk: TranslateChunk,
    ) -> EngineResult:
        chunks = split_document(doc, count, self.max_chunk_chars)
        translated: list[str] = []
        tokens_in = tokens_out = 0
        model = None
        for chunk in chunks:
            result = await translate_chunk(protect_markers(chunk))
            tokens_in += result.tokens_in
            tokens_out += result.tokens_out
            model = result.model or model
            translated.append(_keep_edges(chunk, restore_markers(result.text)))

        try:
            translated_doc = parse(join_chunks(translated))
            check_structure(doc, translated_doc)
        except (StructuralMismatch, ParseFailure) as exc:
            exc.spent_tokens = (tokens_in, tokens_out)
            raise

        return EngineResult(
            doc=translated_doc,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            chunk_count_used=count,
            chunks_sent=len(chunks),
            model=model,
        )
