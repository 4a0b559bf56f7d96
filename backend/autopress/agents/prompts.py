"""Prompt catalog for master articles and translations."""

from dataclasses import dataclass

from autopress.constants.languages import language_name


@dataclass(frozen=True)
class PromptPair:
    system: str
    user: str


ARTICLE_FORMAT = """

Write 600-800 words in a natural, conversational voice. Pick one narrow,
concrete subject within the topic rather than a broad overview.

SEO:
- Title of 50-57 characters containing the main keyword
- Meta description of 150-160 characters
- 10-15 related keywords used naturally in the text
- 3-5 links to authoritative sources, listed ONLY under External Resources

Answer with the article only, in exactly this layout:

# [Title]

**Meta Description:** [150-160 characters]

## Introduction
[Opening that tells the reader what they will get]

## [Section title]
[Body]

## [Section title]
[Body]

## [Section title]
[Body]

## Frequently Asked Questions

### [Question]?
[Answer of 50-60 words]

### [Question]?
[Answer of 50-60 words]

## Key Takeaways
- [Insight]
- [Insight]
- [Insight]

**Keywords:** [keyword, keyword, keyword]

## External Resources
- [Source name](https://...)
"""

# slug -> (writer persona, list of angles)
CATEGORY_PROMPTS: dict[str, tuple[str, list[str]]] = {
    "technology": (
        "You are a technology writer who explains tools and concepts to non-specialists.",
        [
            "a beginner's guide to one specific piece of everyday technology",
            "a troubleshooting walkthrough for a common device or software problem",
            "a comparison of two popular tools that solve the same problem",
        ],
    ),
    "business-finance": (
        "You are a business journalist who writes practical advice for small companies.",
        [
            "a case study of a single business decision and what it teaches",
            "a step-by-step guide to one financial task owners often postpone",
        ],
    ),
    "health-wellness": (
        "You are a health writer who relies on well-established research and avoids medical claims.",
        [
            "an evidence-based look at one daily habit and its effect on wellbeing",
            "a myth-versus-fact article about a popular wellness trend",
        ],
    ),
    "travel-destinations": (
        "You are a travel writer who focuses on practical, specific trip planning.",
        [
            "a guide to a lesser-known destination for a specific type of traveller",
            "a budgeting guide for one kind of trip",
        ],
    ),
    "food-recipes": (
        "You are a home cook and food writer.",
        [
            "a deep dive into one technique that improves a common dish",
            "a guide to cooking with one seasonal ingredient",
        ],
    ),
    "science-innovation": (
        "You are a science communicator who makes research findings accessible.",
        [
            "an explainer on one recent scientific idea and why it matters",
            "a history of one invention and where it is heading",
        ],
    ),
    "careers-job-search": (
        "You are a career coach who gives concrete, actionable advice.",
        [
            "a guide to one stage of the job search process",
            "a practical article on building one specific professional skill",
        ],
    ),
}

DEFAULT_PERSONA = "You are an experienced writer who produces clear, specific, well-structured articles."
DEFAULT_ANGLES = [
    "a practical guide to one specific question readers of this topic often ask",
    "an article debunking one common misconception about this topic",
]


def variant_count(category_slug: str) -> int:
    return len(CATEGORY_PROMPTS.get(category_slug, (DEFAULT_PERSONA, DEFAULT_ANGLES))[1])


def prompt_for(category_slug: str, display_name: str | None = None, variant: int = 0) -> PromptPair:
    """Look up the prompt for a category. Unknown slugs get a generic prompt."""
    persona, angles = CATEGORY_PROMPTS.get(category_slug, (DEFAULT_PERSONA, DEFAULT_ANGLES))
    angle = angles[variant % len(angles)]
    topic = display_name or category_slug.replace("-", " ").title()
    user = f'Write {angle}, for the "{topic}" category.{ARTICLE_FORMAT}'
    return PromptPair(system=persona, user=user)


TRANSLATION_SYSTEM = """You are an expert translator. Translate the text into {language}.

RULES:
- Translate every word into {language} except the [[AP:...]] tokens
- Copy every [[AP:...]] token exactly as written, in the same position
- Keep all markdown markers (# ## ### - **) and line breaks
- Do not add, remove, merge or reorder headings, questions or list items
- Do not add commentary; answer with the translated text only"""


def translation_prompt(language_code: str, chunk: str) -> PromptPair:
    language = language_name(language_code)
    return PromptPair(
        system=TRANSLATION_SYSTEM.format(language=language),
        user=f"Translate this part of an article into {language}:\n\n{chunk}",
    )
