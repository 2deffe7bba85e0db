"""
Object Writer Module

Persists signed commit objects and moves references. The signing core only
needs "write raw commit bytes" and "update a reference"; any object-model
backend providing those can be plugged in.
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

from dulwich.objects import Commit, Tree
from dulwich.repo import Repo

logger = logging.getLogger(__name__)

HEAD_REF = 'HEAD'


def commit_object_id(raw: bytes) -> str:
    """Content address of a commit object (SHA-1 object format)."""
    return hashlib.sha1(b'commit %d\x00' % len(raw) + raw).hexdigest()


class ObjectWriter(ABC):
    """Abstract base class for commit object storage backends."""

    @abstractmethod
    def write_commit(self, raw: bytes) -> str:
        """Store raw commit bytes unchanged and return the commit id."""
        pass

    @abstractmethod
    def update_ref(self, ref_name: str, commit_id: str) -> None:
        """Point ``ref_name`` at ``commit_id``; ``HEAD`` updates the current branch."""
        pass

    @abstractmethod
    def read_commit(self, commit_id: str) -> bytes:
        """Return the raw bytes of a stored commit."""
        pass

    @abstractmethod
    def head(self) -> Optional[str]:
        """Commit id ``HEAD`` resolves to, or None on an unborn branch."""
        pass


class InMemoryObjectWriter(ObjectWriter):
    """Dictionary-backed object store, with ``HEAD`` symbolic to a branch."""

    def __init__(self, branch: str = 'refs/heads/main'):
        self.objects: Dict[str, bytes] = {}
        self.refs: Dict[str, str] = {}
        self.branch = branch

    def _resolve(self, ref_name: str) -> str:
        return self.branch if ref_name == HEAD_REF else ref_name

    def write_commit(self, raw: bytes) -> str:
        commit_id = commit_object_id(raw)
        self.objects[commit_id] = bytes(raw)
        return commit_id

    def update_ref(self, ref_name: str, commit_id: str) -> None:
        if commit_id not in self.objects:
            raise KeyError(f"Unknown commit: {commit_id}")
        self.refs[self._resolve(ref_name)] = commit_id

    def read_commit(self, commit_id: str) -> bytes:
        if commit_id not in self.objects:
            raise KeyError(f"Unknown commit: {commit_id}")
        return self.objects[commit_id]

    def head(self) -> Optional[str]:
        return self.refs.get(self.branch)


class DulwichObjectWriter(ObjectWriter):
    """Git repository backend built on dulwich."""

    def __init__(self, repo_path: Union[str, Path] = '.', init: bool = False):
        """
        Open (or create) a repository.

        Args:
            repo_path: Repository work tree
            init: Create the repository (and directory) if it does not exist
        """
        self.repo_path = Path(repo_path)
        if init and not (self.repo_path / '.git').exists():
            self.repo_path.mkdir(parents=True, exist_ok=True)
            logger.debug('Initializing repository at %s', self.repo_path)
            self.repo = Repo.init(str(self.repo_path))
        else:
            self.repo = Repo(str(self.repo_path))

    def write_commit(self, raw: bytes) -> str:
        # from_string keeps the raw chunks, so the stored bytes (and the id)
        # are exactly the signed object
        commit = Commit.from_string(raw)
        self.repo.object_store.add_object(commit)
        commit_id = commit.id.decode('ascii')
        logger.debug('Wrote commit %s', commit_id)
        return commit_id

    def update_ref(self, ref_name: str, commit_id: str) -> None:
        self.repo.refs[ref_name.encode('utf-8')] = commit_id.encode('ascii')
        logger.debug('Updated %s to %s', ref_name, commit_id)

    def read_commit(self, commit_id: str) -> bytes:
        obj = self.repo[commit_id.encode('ascii')]
        if obj.type_name != b'commit':
            raise KeyError(f"{commit_id} is a {obj.type_name.decode()}, not a commit")
        return obj.as_raw_string()

    def resolve(self, revision: str) -> str:
        """Resolve a ref name or full commit id to a commit id."""
        name = revision.encode('utf-8')
        for candidate in (name, b'refs/heads/' + name, b'refs/tags/' + name):
            try:
                return self.repo.refs[candidate].decode('ascii')
            except KeyError:
                continue
        if name in self.repo:
            return revision
        raise KeyError(f"Unknown revision: {revision}")

    def head(self) -> Optional[str]:
        try:
            return self.repo.refs[HEAD_REF.encode('ascii')].decode('ascii')
        except KeyError:
            return None

    def write_index_tree(self) -> str:
        """Write the tree recorded in the index and return its id."""
        if not Path(self.repo.index_path()).exists():
            # fresh repository: nothing staged yet
            tree = Tree()
            self.repo.object_store.add_object(tree)
            return tree.id.decode('ascii')
        tree_id = self.repo.open_index().commit(self.repo.object_store)
        return tree_id.decode('ascii')

    def close(self) -> None:
        self.repo.close()
