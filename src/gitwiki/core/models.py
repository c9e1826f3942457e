"""Data models for GitWiki."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, NewType

from pydantic import BaseModel

if TYPE_CHECKING:
    from gitwiki.core.repository import Page

PageName = NewType("PageName", str)
RawMarkup = NewType("RawMarkup", str)
RenderedHtml = NewType("RenderedHtml", str)


class Blob(BaseModel):
    """A single versioned file in the wiki tree."""

    path: str
    data: str = ""
    id: str | None = None

    @property
    def committed(self) -> bool:
        return self.id is not None


@dataclass(frozen=True)
class PageFound:
    """Lookup outcome for a page that exists."""

    page: "Page"


@dataclass(frozen=True)
class PageMissing:
    """Lookup outcome for a page that does not exist yet."""

    name: str


PageLookup = PageFound | PageMissing
