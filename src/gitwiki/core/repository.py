"""Page lookup and persistence on top of the git backend."""

import logging
from collections.abc import Iterable

from gitwiki.core.backend import GitBackend
from gitwiki.core.errors import PageNotFound
from gitwiki.core.models import Blob, PageFound, PageLookup, PageMissing, PageName

logger = logging.getLogger(__name__)

EXISTS = "exists"
UNKNOWN = "unknown"


class Page:
    """Read/write view of a single page blob."""

    def __init__(self, blob: Blob, backend: GitBackend, extension: str):
        self._blob = blob
        self._backend = backend
        self._extension = extension

    def __repr__(self) -> str:
        return f"Page({self.name!r}, new={self.is_new})"

    def __str__(self) -> str:
        return self.name

    @property
    def name(self) -> PageName:
        """Blob path without the page extension."""
        return PageName(self._blob.path.removesuffix(self._extension))

    @property
    def path(self) -> str:
        return self._blob.path

    @property
    def content(self) -> str:
        return self._blob.data

    @property
    def is_new(self) -> bool:
        """True until the page has been committed at least once."""
        return not self._blob.committed

    def save(self, new_content: str) -> str | None:
        """Write, stage and commit new content for this page.

        Returns the commit sha, or None if the content was unchanged.
        """
        if new_content == self.content:
            logger.debug("Content of %s unchanged, not saving", self.name)
            return None

        with self._backend.lock:
            # Another writer may have created the page since this handle was read
            created = self.is_new and self._backend.lookup_blob(self.path) is None
            message = f"Created {self.name}" if created else f"Updated {self.name}"
            sha = self._backend.commit_file(self.path, new_content, message)

            self._blob = self._backend.lookup_blob(self.path) or Blob(
                path=self.path, data=new_content
            )
        return sha


class PageRepository:
    """Maps page names to blobs in a :class:`GitBackend`."""

    def __init__(self, backend: GitBackend, extension: str = ".md"):
        self.backend = backend
        self.extension = extension

    def _path_for(self, name: str) -> str:
        if not name:
            raise ValueError("Page name must not be empty")
        return name + self.extension

    def _wrap(self, blob: Blob) -> Page:
        return Page(blob, self.backend, self.extension)

    def find_all(self) -> list[Page]:
        """All pages in backend tree order."""
        return [self._wrap(blob) for blob in self.backend.list_tree()]

    def find(self, name: str) -> Page:
        """Get a committed page by name.

        Raises:
            PageNotFound: if no blob exists at the page's path.
        """
        blob = self.backend.lookup_blob(self._path_for(name))
        if blob is None:
            raise PageNotFound(name)
        return self._wrap(blob)

    def find_or_create(self, name: str) -> Page:
        """Get a page by name, or a new unsaved page if it does not exist."""
        try:
            return self.find(name)
        except PageNotFound:
            return self._wrap(self.backend.create_blob(self._path_for(name), ""))

    def lookup(self, name: str) -> PageLookup:
        """Resolve a name to :class:`PageFound` or :class:`PageMissing`."""
        try:
            return PageFound(self.find(name))
        except PageNotFound as e:
            return PageMissing(e.name)

    def existence_class_for(self, name: str) -> str:
        """CSS class for links to ``name``: ``exists`` or ``unknown``."""
        try:
            self.find(name)
        except PageNotFound:
            return UNKNOWN
        return EXISTS

    def existence_classes_for(self, names: Iterable[str]) -> dict[str, str]:
        """Resolve the CSS class of several names against one tree snapshot."""
        paths = {name: self._path_for(name) for name in names}
        found = self.backend.existing_paths(paths.values())
        return {name: EXISTS if path in found else UNKNOWN for name, path in paths.items()}
