# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Type declaration extraction from raw source text.

This pass is independent of the structured facts supplied by the extractor:
it re-reads each file's raw text and finds type-like declarations with its
own regular expressions:

- interface Foo [extends ...] { name: type; ... }
- type Foo = { name: type; ... }
- class Foo [extends ...] [implements ...] { name: type; ... }
- model Foo { name Type @annotations }   (schema files only)

Each declaration is tagged with the layers its path suggests (database,
api, backend). A file that cannot be re-read is reported back to the caller
instead of aborting extraction for the rest of the corpus.
"""

import logging
import re
from typing import Dict, List, Optional, Pattern, Set, Tuple

from codex_reconciler.config import Config
from codex_reconciler.fact_store import FactStore
from codex_reconciler.models import (
    UNPARSED_TYPE,
    DeclarationKind,
    FieldEntry,
    LayerTag,
    TypeDeclaration,
)

logger = logging.getLogger(__name__)

_GENERICS = r"(?:<[^>{]*>)?"

DECLARATION_PATTERNS: List[Tuple[str, Pattern[str]]] = [
    (
        DeclarationKind.INTERFACE,
        re.compile(r"\binterface\s+(\w+)\s*" + _GENERICS + r"\s*(?:extends[^{]*)?\{([^}]*)\}"),
    ),
    (
        DeclarationKind.TYPE_ALIAS,
        re.compile(r"\btype\s+(\w+)\s*" + _GENERICS + r"\s*=\s*\{([^}]*)\}"),
    ),
    (
        DeclarationKind.CLASS,
        re.compile(
            r"\bclass\s+(\w+)\s*"
            + _GENERICS
            + r"\s*(?:extends[^{]*)?(?:implements[^{]*)?\{([^}]*)\}"
        ),
    ),
]

SCHEMA_MODEL_PATTERN = re.compile(r"\bmodel\s+(\w+)\s*\{([^}]*)\}")

_TYPED_FIELD = re.compile(r"(\w+)\??[ \t]*:[ \t]*([^;,\n}]*)")
_SCHEMA_FIELD = re.compile(r"^(\w+)(?:\s+([\w\[\]?]+))?")
_LINE_COMMENT = re.compile(r"//[^\n]*")
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_DEFAULT_VALUE = re.compile(r"\s=(?!>).*$")


def _line_of(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


def parse_typed_fields(body: str) -> List[FieldEntry]:
    """Parse ``name: type`` pairs from an interface, type alias or class body.

    Comments are ignored and initializers (``= value``) are dropped from the
    type text. A field without readable type text gets UNPARSED_TYPE. When a
    name repeats, the first occurrence wins.
    """
    body = _LINE_COMMENT.sub("", _BLOCK_COMMENT.sub("", body))
    fields: List[FieldEntry] = []
    seen: Set[str] = set()
    for match in _TYPED_FIELD.finditer(body):
        name = match.group(1)
        if name in seen:
            continue
        seen.add(name)
        type_text = _DEFAULT_VALUE.sub("", match.group(2)).strip()
        fields.append(FieldEntry(name=name, type_text=type_text or UNPARSED_TYPE))
    return fields


def parse_schema_fields(body: str) -> List[FieldEntry]:
    """Parse ``name Type`` lines from a schema model body.

    Lines starting with ``@`` (block attributes such as ``@@id``) and
    comment lines are skipped; trailing ``@annotations`` are ignored.
    """
    fields: List[FieldEntry] = []
    seen: Set[str] = set()
    for raw_line in body.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("@") or line.startswith("//"):
            continue
        match = _SCHEMA_FIELD.match(line)
        if not match or match.group(1) in seen:
            continue
        seen.add(match.group(1))
        fields.append(FieldEntry(name=match.group(1), type_text=match.group(2) or UNPARSED_TYPE))
    return fields


class TypeExtractor:
    """Extracts TypeDeclarations from every file of a frozen FactStore."""

    def __init__(self, store: FactStore, config: Optional[Config] = None) -> None:
        self._store = store
        self._config = config if config is not None else Config.defaults()

    def layer_tags(self, filepath: str) -> Set[str]:
        """Layers suggested by keywords in a file's path. May be several."""
        path = self._store.relative_path(filepath).lower()
        tags: Set[str] = set()

        extension = self._config.schema_file_extension.lower()
        if path.endswith(extension) or any(
            kw.lower() in path for kw in self._config.database_path_keywords
        ):
            tags.add(LayerTag.DATABASE)

        if any(kw.lower() in path for kw in self._config.api_path_keywords):
            tags.add(LayerTag.API)

        source_root = self._config.source_root.lower()
        under_source_root = bool(source_root) and path.startswith(source_root + "/")
        if under_source_root or any(
            kw.lower() in path for kw in self._config.backend_path_keywords
        ):
            tags.add(LayerTag.BACKEND)

        return tags

    def extract_from_text(self, filepath: str, text: str) -> List[TypeDeclaration]:
        """Find all declarations in one file's text, in source order."""
        tags = self.layer_tags(filepath)
        found: List[Tuple[int, TypeDeclaration]] = []

        for kind, pattern in DECLARATION_PATTERNS:
            for match in pattern.finditer(text):
                declaration = TypeDeclaration(
                    name=match.group(1),
                    kind=kind,
                    fields=parse_typed_fields(match.group(2)),
                    source_file=filepath,
                    layer_tags=set(tags),
                    line=_line_of(text, match.start()),
                )
                found.append((match.start(), declaration))

        if filepath.lower().endswith(self._config.schema_file_extension.lower()):
            for match in SCHEMA_MODEL_PATTERN.finditer(text):
                declaration = TypeDeclaration(
                    name=match.group(1),
                    kind=DeclarationKind.SCHEMA_MODEL,
                    fields=parse_schema_fields(match.group(2)),
                    source_file=filepath,
                    layer_tags=set(tags),
                    line=_line_of(text, match.start()),
                )
                found.append((match.start(), declaration))

        found.sort(key=lambda item: item[0])
        return [declaration for _, declaration in found]

    def find_usages(self, type_name: str) -> List[str]:
        """Ids of functions whose parameters or return type mention ``type_name``."""
        usages: List[str] = []
        for func in self._store.iter_functions():
            mentioned = any(type_name in param for param in func.parameter_signatures)
            if not mentioned and func.return_type_text:
                mentioned = type_name in func.return_type_text
            if mentioned:
                usages.append(func.function_id)
                if len(usages) >= self._config.max_type_usages:
                    break
        return usages

    def extract(self) -> Tuple[List[TypeDeclaration], Dict[str, str]]:
        """Extract declarations from every readable file.

        Returns:
            Tuple of (declarations, unavailable): declarations in stable file
            order, and path -> reason for files that could not be re-read.

        Raises:
            FactStoreNotFrozenError: If the store is not frozen.
        """
        texts, unavailable = self._store.read_all_sources()
        declarations: List[TypeDeclaration] = []
        for filepath, text in texts.items():
            file_declarations = self.extract_from_text(filepath, text)
            if file_declarations:
                logger.debug(f"{len(file_declarations)} type declarations in {filepath}")
            declarations.extend(file_declarations)

        for declaration in declarations:
            declaration.used_in = self.find_usages(declaration.name)

        logger.info(
            f"Extracted {len(declarations)} type declarations "
            f"({len(unavailable)} files unavailable)"
        )
        return declarations, unavailable
