"""RSS feeds and the XML sitemap, built from the published article shards."""

from datetime import datetime
from email.utils import format_datetime

from bs4 import BeautifulSoup
from lxml import etree
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from autopress.config import Settings
from autopress.models import ArticleBase, Category, shard_for
from autopress.services.timing import as_utc

CONTENT_NS = "http://purl.org/rss/1.0/modules/content/"
ATOM_NS = "http://www.w3.org/2005/Atom"
SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"

ITEMS_PER_FEED = 50
MAX_SITEMAP_URLS = 50000

# Tags that never belong in a feed reader
_UNSAFE_TAGS = ["script", "style", "iframe", "object", "embed", "form"]


def clean_feed_html(content: str) -> str:
    """Drop active content and event handler attributes from rendered article HTML."""
    soup = BeautifulSoup(content, "lxml")
    for tag in soup.find_all(_UNSAFE_TAGS):
        tag.decompose()
    for tag in soup.find_all(True):
        for attr in [name for name in tag.attrs if name.lower().startswith("on")]:
            del tag[attr]
    body = soup.body
    return "".join(str(child) for child in body.children) if body else ""


def _sub(parent: etree._Element, tag: str, text: str | None = None, **attrib: str) -> etree._Element:
    element = etree.SubElement(parent, tag, attrib)
    if text is not None:
        element.text = text
    return element


def render_rss(
    *,
    title: str,
    description: str,
    site_url: str,
    feed_url: str,
    language: str,
    articles: list[ArticleBase],
    category_names: dict[int, str],
    built_at: datetime,
) -> bytes:
    rss = etree.Element("rss", version="2.0", nsmap={"content": CONTENT_NS, "atom": ATOM_NS})
    channel = _sub(rss, "channel")
    _sub(channel, "title", title)
    _sub(channel, "description", description)
    _sub(channel, "link", site_url)
    _sub(channel, "language", language)
    _sub(channel, "lastBuildDate", format_datetime(as_utc(built_at)))
    _sub(channel, f"{{{ATOM_NS}}}link", href=feed_url, rel="self", type="application/rss+xml")

    for article in articles:
        item = _sub(channel, "item")
        _sub(item, "title", article.title)
        _sub(item, "link", article.canonical_url)
        _sub(item, "guid", article.canonical_url, isPermaLink="true")
        _sub(item, "description", article.summary or article.meta_description or "")
        _sub(item, "pubDate", format_datetime(as_utc(article.published_at)))
        if article.category_id in category_names:
            _sub(item, "category", category_names[article.category_id])
        encoded = _sub(item, f"{{{CONTENT_NS}}}encoded")
        encoded.text = etree.CDATA(clean_feed_html(article.content))

    return etree.tostring(rss, xml_declaration=True, encoding="UTF-8", pretty_print=True)


def render_sitemap(entries: list[tuple[str, datetime]]) -> bytes:
    urlset = etree.Element("urlset", nsmap={None: SITEMAP_NS})
    for loc, lastmod in entries:
        url = _sub(urlset, "url")
        _sub(url, "loc", loc)
        _sub(url, "lastmod", as_utc(lastmod).isoformat())
    return etree.tostring(urlset, xml_declaration=True, encoding="UTF-8", pretty_print=True)


class FeedService:
    """Publication collateral over the language shards."""

    def __init__(self, session: AsyncSession, settings: Settings):
        self.session = session
        self.settings = settings

    @property
    def base_url(self) -> str:
        return self.settings.canonical_base_url.rstrip("/")

    async def _category_names(self) -> dict[int, str]:
        result = await self.session.execute(select(Category))
        return {category.id: category.display_name for category in result.scalars().all()}

    async def _latest(self, language: str, category: Category | None, limit: int) -> list[ArticleBase]:
        shard = shard_for(language)
        stmt = select(shard).where(shard.language_code == language)
        if category is not None:
            stmt = stmt.where(shard.category_id == category.id)
        result = await self.session.execute(stmt.order_by(shard.published_at.desc()).limit(limit))
        return list(result.scalars().all())

    async def rss(self, language: str, category: Category | None = None, *, now: datetime) -> bytes:
        """Newest articles in one language, optionally limited to one category."""
        language = language.lower()
        name = f"{category.slug}.rss" if category else "all.rss"
        feed_url = f"{self.base_url}{self.settings.api_v1_prefix}/feeds/{name}?lang={language}"
        title = self.settings.app_name
        description = f"Latest articles from {title}"
        if category is not None:
            title = f"{title} - {category.display_name}"
            description = f"Latest {category.display_name} articles from {self.settings.app_name}"

        return render_rss(
            title=title,
            description=description,
            site_url=self.base_url,
            feed_url=feed_url,
            language=language,
            articles=await self._latest(language, category, ITEMS_PER_FEED),
            category_names=await self._category_names(),
            built_at=now,
        )

    async def sitemap(self) -> bytes:
        """Every published article in every configured language, newest first per language."""
        entries: list[tuple[str, datetime]] = []
        for language in self.settings.language_codes:
            remaining = MAX_SITEMAP_URLS - len(entries)
            if remaining <= 0:
                break
            shard = shard_for(language)
            result = await self.session.execute(
                select(shard.canonical_url, shard.published_at)
                .where(shard.language_code == language)
                .order_by(shard.published_at.desc())
                .limit(remaining)
            )
            entries.extend((loc, published_at) for loc, published_at in result.all())
        return render_sitemap(entries)
