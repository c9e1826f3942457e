"""Exceptions raised by the wiki core."""

from pathlib import Path


class WikiError(Exception):
    """Base exception for GitWiki operations."""


class PageNotFound(WikiError):
    """Raised when no blob exists for a page name."""

    def __init__(self, name: str):
        super().__init__(f"Page not found: {name}")
        self.name = name


class RepositoryUnavailable(WikiError):
    """Raised when the configured path is not a usable git repository."""

    def __init__(self, path: Path, reason: str = "Not a git repository"):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason
