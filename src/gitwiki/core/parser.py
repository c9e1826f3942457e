"""Markup rendering with automatic URL and WikiWord links."""

import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable

from markdown import Markdown
from markdown.extensions import Extension
from markdown.postprocessors import Postprocessor

from gitwiki.core.models import RawMarkup, RenderedHtml

if TYPE_CHECKING:
    from gitwiki.core.repository import Page, PageRepository


# Pattern for bracketed URLs: <http://example.com>
URL_PATTERN = re.compile(r"""<((?:https?|ftp|irc):[^'">\s]+)>""", re.IGNORECASE)

# Pattern for WikiWords: two or more capitalised humps, e.g. FooBar, HomePage2
WIKI_WORD_PATTERN = r"[A-Z][a-z]+[A-Z][A-Za-z0-9]+"

# Anchors emitted by auto_link are copied through untouched (group 1)
WIKI_LINK_PATTERN = re.compile(
    rf"""((?i:<a href="(?:https?|ftp|irc):[^"<>]*">[^<>]*</a>))|({WIKI_WORD_PATTERN})"""
)

BREAK_TAG_PATTERN = re.compile(r"<br\s*/?>", re.IGNORECASE)


def titleize(name: str) -> str:
    """Split a WikiWord into words: ``HTMLParser`` -> ``HTML Parser``."""
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1 \2", name)
    return re.sub(r"([a-z\d])([A-Z])", r"\1 \2", name)


def auto_link(text: str) -> str:
    """Turn ``<URL>`` into an anchor whose href and text are the URL."""
    return URL_PATTERN.sub(r'<a href="\1">\1</a>', text)


def wiki_link(text: str, existence_class: Callable[[str], str]) -> str:
    """Replace WikiWords with links to their pages.

    Args:
        text: Markup, possibly already containing anchors.
        existence_class: Returns the CSS class for a page name.

    Returns:
        Markup with every WikiWord outside a tag replaced by an anchor.
    """

    def replace_match(m: re.Match) -> str:
        if m.group(1):
            return m.group(1)
        page = m.group(2)
        return f'<a class="{existence_class(page)}" href="/{page}">{titleize(page)}</a>'

    return WIKI_LINK_PATTERN.sub(replace_match, text)


def extract_wiki_words(text: str) -> list[str]:
    """Return the WikiWords ``wiki_link`` would link, in order of appearance."""
    return [m.group(2) for m in WIKI_LINK_PATTERN.finditer(text) if m.group(2)]


class MarkupConverter(ABC):
    """Converts lightweight markup to an HTML fragment."""

    @abstractmethod
    def convert(self, text: str) -> RenderedHtml:
        """Render markup to HTML."""
        ...

    @abstractmethod
    def line_break(self) -> str:
        """HTML emitted for a line break."""
        ...


class LineBreakPostprocessor(Postprocessor):
    """Rewrites every rendered break tag with the converter's own markup."""

    def __init__(self, md: Markdown, line_break: Callable[[], str]):
        super().__init__(md)
        self.line_break = line_break

    def run(self, text: str) -> str:
        return BREAK_TAG_PATTERN.sub(lambda m: self.line_break(), text)


class LineBreakExtension(Extension):
    """Markdown extension that overrides how line breaks are written."""

    def __init__(self, line_break: Callable[[], str], **kwargs):
        self.line_break = line_break
        super().__init__(**kwargs)

    def extendMarkdown(self, md: Markdown) -> None:
        # Runs after raw HTML has been put back in place
        md.postprocessors.register(
            LineBreakPostprocessor(md, self.line_break),
            "line_break",
            5,
        )


class MarkdownConverter(MarkupConverter):
    """Python-Markdown converter that writes line breaks as a bare ``<br>``."""

    def create_parser(self) -> Markdown:
        return Markdown(
            extensions=[
                "extra",
                "sane_lists",
                "nl2br",  # Single newlines become line breaks
                "pymdownx.tasklist",
                LineBreakExtension(self.line_break),
            ]
        )

    def convert(self, text: str) -> RenderedHtml:
        return RenderedHtml(self.create_parser().convert(text))

    def line_break(self) -> str:
        return "<br>"


class RenderingPipeline:
    """Renders page markup to HTML, linking URLs and WikiWords.

    The order is fixed: bracketed URLs are linked first, then WikiWords,
    then the result goes through the markup converter.
    """

    def __init__(
        self,
        repository: "PageRepository",
        converter: MarkupConverter | None = None,
        resolve_links_once: bool = False,
    ):
        self.repository = repository
        self.converter = converter or MarkdownConverter()
        self.resolve_links_once = resolve_links_once

    def _existence_class(self, text: str) -> Callable[[str], str]:
        if not self.resolve_links_once:
            return self.repository.existence_class_for
        classes = self.repository.existence_classes_for(set(extract_wiki_words(text)))

        def existence_class(name: str) -> str:
            if name not in classes:
                classes[name] = self.repository.existence_class_for(name)
            return classes[name]

        return existence_class

    def render(self, content: RawMarkup | str) -> RenderedHtml:
        linked = auto_link(content)
        linked = wiki_link(linked, self._existence_class(linked))
        return self.converter.convert(linked)

    def render_page(self, page: "Page") -> RenderedHtml:
        return self.render(RawMarkup(page.content))
