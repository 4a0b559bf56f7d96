"""Tests for the article document: parsing, canonical text and derived fields."""

import pytest

from conftest import article_text, sample_document

from autopress.exceptions import ParseFailure
from autopress.services.document import (
    content_hash,
    estimate_reading_time,
    meta_title,
    parse,
    render_html,
    serialize,
    skeleton,
    to_slug,
    translation_slug,
)


class TestParse:
    """Provider text to document."""

    def test_parses_every_part(self) -> None:
        doc = parse(article_text("Learning To Juggle"))

        assert doc.title == "Learning To Juggle"
        assert doc.meta_description == "Everything worth knowing about learning to juggle."
        assert doc.intro.startswith("An opening paragraph")
        assert [section.heading for section in doc.sections] == ["Getting Started", "Going Further"]
        assert "Second paragraph" in doc.sections[0].body
        assert [entry.q for entry in doc.faq] == ["Is it hard to learn?", "Why does it matter?"]
        assert doc.summary == "- Start small\n- Stay consistent"
        assert doc.keywords == ["habits", "learning", "practice"]
        assert doc.external_links[0].url == "https://example.org/guide"

    def test_strips_markdown_code_fence(self) -> None:
        fenced = f"```markdown\n{article_text('Fenced Answer')}```"
        assert parse(fenced).title == "Fenced Answer"

    def test_text_before_first_heading_becomes_intro(self) -> None:
        doc = parse("# Title\n\nOpening words.\n\n## Only Section\n\nBody.")
        assert doc.intro == "Opening words."
        assert len(doc.sections) == 1

    def test_missing_title_fails(self) -> None:
        with pytest.raises(ParseFailure):
            parse("## Introduction\n\nHello.\n\n## Section\n\nBody.")

    def test_missing_sections_fails(self) -> None:
        with pytest.raises(ParseFailure):
            parse("# Title\n\n## Introduction\n\nOnly an intro.")

    def test_empty_answer_fails(self) -> None:
        with pytest.raises(ParseFailure):
            parse("")


class TestCanonicalText:
    def test_parse_reads_back_what_serialize_writes(self) -> None:
        doc = sample_document()
        assert parse(serialize(doc)) == doc

    def test_blocks_appear_in_fixed_order(self) -> None:
        text = serialize(sample_document())
        order = [
            "# A Practical Guide",
            "**Meta Description:**",
            "## Introduction",
            "## Feeding the Starter",
            "## Frequently Asked Questions",
            "## Key Takeaways",
            "**Keywords:**",
            "## External Resources",
        ]
        positions = [text.index(marker) for marker in order]
        assert positions == sorted(positions)

    def test_skeleton_counts(self) -> None:
        shape = skeleton(sample_document())
        assert (shape.section_count, shape.faq_count, shape.keyword_count, shape.has_summary) == (3, 2, 3, True)


class TestHtml:
    def test_renders_sections_and_faq(self) -> None:
        html = render_html(sample_document())
        assert "<h2>Feeding the Starter</h2>" in html
        assert '<section class="faq">' in html
        assert "<li>Preheat the oven</li>" in html
        assert 'rel="noopener nofollow"' in html

    def test_escapes_markup_from_provider(self) -> None:
        doc = sample_document()
        doc.intro = "<script>alert(1)</script> and **bold**"
        html = render_html(doc)
        assert "<script>" not in html
        assert "<strong>bold</strong>" in html


class TestDerivedFields:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Hello, World!", "hello-world"),
            ("  Many   spaces -- here ", "many-spaces-here"),
            ("¿Qué?", "qu"),
            ("!!!", "article"),
            ("", "article"),
        ],
    )
    def test_to_slug(self, text: str, expected: str) -> None:
        assert to_slug(text) == expected

    def test_slug_respects_max_length(self) -> None:
        slug = to_slug("word " * 40, max_length=20)
        assert len(slug) <= 20
        assert not slug.endswith("-")

    def test_translation_slug_is_derived_from_master(self) -> None:
        assert translation_slug("sourdough-guide", "DE") == "sourdough-guide-de"

    def test_meta_title_truncates_long_titles(self) -> None:
        assert meta_title("Short") == "Short"
        long = meta_title("x" * 100)
        assert len(long) == 60
        assert long.endswith("...")

    def test_reading_time(self) -> None:
        assert estimate_reading_time("") == 1
        assert estimate_reading_time("<p>" + "word " * 400 + "</p>") == 2
        assert estimate_reading_time("<p>" + "word " * 1000 + "</p>") == 5

    def test_content_hash_depends_on_language(self) -> None:
        assert content_hash("T", "<p>x</p>", "en") != content_hash("T", "<p>x</p>", "de")
        assert content_hash("T", "<p>x</p>", "en") == content_hash("T", "<p>x</p>", "en")
