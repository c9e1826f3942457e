"""Git-backed blob storage for wiki pages.

Pages live as plain files in the top level of a git working tree. Reads go
through the HEAD tree so a page only exists once it has been committed;
writes go through the working tree and the index.
"""

import logging
import os
import tempfile
import threading
from collections.abc import Iterable
from pathlib import Path

from git import Actor, Repo
from git.exc import InvalidGitRepositoryError, NoSuchPathError
from git.objects import Tree

from gitwiki.core.errors import RepositoryUnavailable
from gitwiki.core.models import Blob

logger = logging.getLogger(__name__)


class GitBackend:
    """Tree of named blobs with commit history, backed by a git repository.

    All writes are funnelled through :meth:`commit_file`, which holds a
    single writer lock around write, stage and commit. Each thread gets its
    own ``Repo``, since a ``Repo`` talks to git through persistent
    ``cat-file`` pipes that cannot be shared between threads.
    """

    def __init__(
        self,
        root: Path,
        author_name: str = "GitWiki",
        author_email: str = "gitwiki@localhost",
    ):
        self.root = Path(root).expanduser()
        self._local = threading.local()
        repo = self._open()
        if repo.bare:
            raise RepositoryUnavailable(self.root, "Bare repository has no working tree")

        self.actor = Actor(author_name, author_email)
        self.lock = threading.RLock()
        logger.info("Opened wiki repository at %s", self.root)

    def _open(self) -> Repo:
        try:
            repo = Repo(self.root)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise RepositoryUnavailable(self.root) from e
        self._local.repo = repo
        return repo

    @property
    def repo(self) -> Repo:
        """The calling thread's handle on the repository."""
        repo = getattr(self._local, "repo", None)
        if repo is None:
            logger.debug("Opening repository handle for %s", threading.current_thread().name)
            repo = self._open()
        return repo

    def _head_tree(self) -> Tree | None:
        """Return the tree of the HEAD commit, or None for an empty repository."""
        if not self.repo.head.is_valid():
            return None
        return self.repo.head.commit.tree

    @staticmethod
    def _to_blob(obj) -> Blob:
        data = obj.data_stream.read().decode("utf-8", errors="replace")
        return Blob(path=obj.path, data=data, id=obj.hexsha)

    def list_tree(self) -> list[Blob]:
        """List blobs in the top level of the HEAD tree, in tree order."""
        tree = self._head_tree()
        if tree is None:
            return []
        return [self._to_blob(obj) for obj in tree.blobs]

    def lookup_blob(self, path: str) -> Blob | None:
        """Get a committed blob by path. Returns None if not found."""
        tree = self._head_tree()
        if tree is None:
            return None
        try:
            obj = tree / path
        except KeyError:
            return None
        if obj.type != "blob":
            return None
        return self._to_blob(obj)

    def existing_paths(self, paths: Iterable[str]) -> set[str]:
        """Return the subset of ``paths`` that resolve to blobs in one tree snapshot."""
        tree = self._head_tree()
        if tree is None:
            return set()
        found = set()
        for path in paths:
            try:
                obj = tree / path
            except KeyError:
                continue
            if obj.type == "blob":
                found.add(path)
        return found

    def create_blob(self, path: str, data: str = "") -> Blob:
        """Create an uncommitted blob that is not yet part of the tree."""
        return Blob(path=path, data=data)

    def write(self, path: str, data: str) -> None:
        """Replace the working-tree file at ``path`` atomically."""
        target = self.root / path
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(data)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def stage(self, path: str) -> None:
        """Add the working-tree file at ``path`` to the index."""
        if not (self.root / path).is_file():
            raise FileNotFoundError(f"Cannot stage missing file: {self.root / path}")
        self.repo.index.add([path])

    def has_staged_changes(self) -> bool:
        """Check whether the index differs from HEAD."""
        if not self.repo.head.is_valid():
            return bool(self.repo.index.entries)
        return bool(self.repo.index.diff("HEAD"))

    def commit(self, message: str) -> str | None:
        """Commit staged changes. Returns the new commit sha.

        Committing with nothing staged is a no-op and returns None.
        """
        if not self.has_staged_changes():
            logger.debug("Nothing staged, skipping commit %r", message)
            return None
        commit = self.repo.index.commit(message, author=self.actor, committer=self.actor)
        logger.info("Committed %s: %s", commit.hexsha[:7], message)
        return commit.hexsha

    def commit_file(self, path: str, data: str, message: str) -> str | None:
        """Write, stage and commit one file as a single unit.

        On failure the working-tree file and its index entry are put back
        the way they were and the original error is re-raised.
        """
        target = self.root / path
        with self.lock:
            previous = target.read_bytes() if target.is_file() else None
            try:
                self.write(path, data)
                self.stage(path)
                return self.commit(message)
            except Exception:
                logger.warning("Commit of %s failed, restoring working tree", path)
                self._restore(path, previous)
                raise

    def _restore(self, path: str, previous: bytes | None) -> None:
        target = self.root / path
        if previous is None:
            target.unlink(missing_ok=True)
        else:
            target.write_bytes(previous)

        index = self.repo.index
        if self.repo.head.is_valid():
            index.reset(paths=[path])
        elif (path, 0) in index.entries:
            index.remove([path])
