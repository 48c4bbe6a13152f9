# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Fact store: the per-run collection of extracted file facts.

The store is filled once by the external extractor and then frozen. Every
component that resolves names across files (call graph, features, entity
reconciliation) requires a frozen store, since resolving against a partial
corpus silently produces wrong backlinks and clusters.

Enumeration order is stable: files sorted by path, then functions in
declaration order within the file (free functions before class methods).

Usage:
    store = FactStore(root="/project")
    store.add_file(file_facts)
    store.freeze()
    for func in store.iter_functions():
        ...
"""

import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from codex_reconciler.models import FileFacts, FunctionFact

logger = logging.getLogger(__name__)


class FactStoreFrozenError(Exception):
    """Raised when a frozen store is modified."""

    pass


class FactStoreNotFrozenError(Exception):
    """Raised when cross-file resolution runs against an incomplete store."""

    pass


class FactUnavailableError(Exception):
    """Raised when the raw text of a file cannot be re-read.

    Callers catch this per file so one unreadable file does not abort the
    rest of the run.
    """

    def __init__(self, filepath: str, reason: str):
        super().__init__(f"Fact unavailable for file {filepath}: {reason}")
        self.filepath = filepath
        self.reason = reason


class FactStore:
    """Immutable-for-the-run collection of FileFacts.

    Maintains a bare-name multi-map (name -> ordered list of declaring
    functions) built once on freeze() and read-only afterwards.
    """

    def __init__(self, root: Optional[str] = None) -> None:
        """Initialize an empty store.

        Args:
            root: Project root used to compute relative paths. Defaults to cwd.
        """
        self.root = root if root is not None else os.getcwd()
        self._files: Dict[str, FileFacts] = {}
        self._frozen = False

        # Built on freeze()
        self._ordered_paths: List[str] = []
        self._functions: List[FunctionFact] = []
        self._name_index: Dict[str, List[FunctionFact]] = {}
        self._callees: Dict[str, List[str]] = {}

    @classmethod
    def from_files(cls, files: Iterable[FileFacts], root: Optional[str] = None) -> "FactStore":
        """Build and freeze a store in one step."""
        store = cls(root=root)
        for facts in files:
            store.add_file(facts)
        store.freeze()
        return store

    def add_file(self, facts: FileFacts) -> None:
        """Add the facts for one file.

        A second record for the same path replaces the first.

        Raises:
            FactStoreFrozenError: If the store has been frozen.
        """
        if self._frozen:
            raise FactStoreFrozenError(f"Cannot add {facts.path}: fact store is frozen")
        if facts.path in self._files:
            logger.debug(f"Replacing facts for {facts.path}")
        self._files[facts.path] = facts

    def freeze(self) -> None:
        """Mark the store complete and build the lookup indices."""
        if self._frozen:
            return

        self._ordered_paths = sorted(self._files)
        for path in self._ordered_paths:
            for func in self._files[path].iter_functions():
                # Identity is (file, name); a later homonym in the same file is not
                # indexed but its callee names still count for the first one
                callees = self._callees.get(func.function_id)
                if callees is not None:
                    logger.debug(f"Duplicate declaration {func.function_id} merged into first")
                    callees.extend(func.callee_names)
                    continue
                self._callees[func.function_id] = list(func.callee_names)
                self._functions.append(func)
                self._name_index.setdefault(func.name, []).append(func)

        self._frozen = True
        logger.info(
            f"Fact store frozen: {len(self._ordered_paths)} files, "
            f"{len(self._functions)} functions"
        )

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def require_frozen(self) -> None:
        """Raise unless the store is complete.

        Raises:
            FactStoreNotFrozenError: If freeze() has not been called.
        """
        if not self._frozen:
            raise FactStoreNotFrozenError(
                "Fact store must be frozen before cross-file resolution"
            )

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, filepath: object) -> bool:
        return filepath in self._files

    def get_file(self, filepath: str) -> Optional[FileFacts]:
        """Get the facts for a file, or None."""
        return self._files.get(filepath)

    def iter_files(self) -> List[FileFacts]:
        """All files in stable (path-sorted) order."""
        self.require_frozen()
        return [self._files[path] for path in self._ordered_paths]

    def iter_functions(self) -> List[FunctionFact]:
        """All functions in stable enumeration order."""
        self.require_frozen()
        return list(self._functions)

    def lookup(self, name: str) -> List[FunctionFact]:
        """All functions declared under a bare name, in enumeration order."""
        self.require_frozen()
        return list(self._name_index.get(name, []))

    def first_declaration(self, name: str) -> Optional[FunctionFact]:
        """The first function declared under a bare name, or None."""
        self.require_frozen()
        candidates = self._name_index.get(name)
        return candidates[0] if candidates else None

    def callee_names(self, func: FunctionFact) -> List[str]:
        """Callee names of a function, including those of same-file homonyms it shadows."""
        self.require_frozen()
        return list(self._callees.get(func.function_id, func.callee_names))

    def languages(self) -> List[str]:
        """Sorted distinct language tags of the stored files."""
        return sorted({facts.language for facts in self._files.values()})

    def relative_path(self, filepath: str) -> str:
        """Path relative to the project root with forward slashes.

        Returns the path unchanged when it cannot be made relative.
        """
        if not os.path.isabs(filepath):
            return filepath.replace(os.sep, "/")
        try:
            rel = os.path.relpath(filepath, self.root)
        except ValueError:
            # On Windows, relpath fails for paths on different drives
            return filepath.replace(os.sep, "/")
        return rel.replace(os.sep, "/")

    def read_source(self, filepath: str) -> str:
        """Return the raw text of a file.

        Uses the text supplied by the extractor when present, otherwise
        re-reads the file from disk. Relative paths are resolved against the
        store root.

        Raises:
            FactUnavailableError: If the file cannot be read or decoded.
        """
        facts = self._files.get(filepath)
        if facts is not None and facts.source_text is not None:
            return facts.source_text

        try:
            return Path(self.root, filepath).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise FactUnavailableError(filepath, str(e)) from e

    def read_all_sources(self) -> Tuple[Dict[str, str], Dict[str, str]]:
        """Re-read every file in stable order.

        Returns:
            Tuple of (texts, failures): path -> text for readable files and
            path -> reason for files whose facts are unavailable.
        """
        self.require_frozen()
        texts: Dict[str, str] = {}
        failures: Dict[str, str] = {}
        for path in self._ordered_paths:
            try:
                texts[path] = self.read_source(path)
            except FactUnavailableError as e:
                logger.warning(str(e))
                failures[path] = e.reason
        return texts, failures
