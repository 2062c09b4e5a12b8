# ubispec/model_types.py
"""
Event field lookup used by cross-document checks that need payload shapes:
the All-trigger correlate check and Any-trigger narrowing.

The lookup answers one question, "which top-level fields does event E
declare?". None means the event type is unknown.
"""

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Set, Union

logger = logging.getLogger(__name__)

_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT = re.compile(r"//[^\n]*")
_DECLARATION = re.compile(
    r"export\s+(?:type\s+(?P<type>[A-Z]\w*)(?:<[^>]*>)?\s*=\s*|interface\s+(?P<iface>[A-Z]\w*)(?:<[^>]*>)?\s*(?:extends\s+[^{]+)?)\{"
)
_KIND_LITERAL = re.compile(r"""\bkind\s*:\s*['"](?P<kind>[A-Z]\w*)['"]""")
_FIELD = re.compile(r"^\s*(?:readonly\s+)?['\"]?(?P<name>[A-Za-z_$][\w$]*)['\"]?\??\s*:")


class EventFieldLookup(Protocol):
    def fields_of(self, event: str) -> Optional[Set[str]]:
        ...


class StaticFieldLookup:
    """Lookup backed by an explicit mapping, e.g. from config or tests."""

    def __init__(self, fields: Mapping[str, Iterable[str]]):
        self._fields = {name: set(values) for name, values in fields.items()}

    def fields_of(self, event: str) -> Optional[Set[str]]:
        found = self._fields.get(event)
        return set(found) if found is not None else None


def _strip_comments(source: str) -> str:
    return _LINE_COMMENT.sub("", _BLOCK_COMMENT.sub("", source))


def _match_brace(source: str, open_index: int) -> int:
    depth = 0
    for i in range(open_index, len(source)):
        char = source[i]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return i
    return len(source) - 1


def _enclosing_brace(source: str, index: int) -> int:
    depth = 0
    for i in range(index - 1, -1, -1):
        char = source[i]
        if char == "}":
            depth += 1
        elif char == "{":
            if depth == 0:
                return i
            depth -= 1
    return -1


def _top_level_fields(body: str) -> Set[str]:
    """Field names declared at depth 0 of an object type body (without the outer braces)."""
    fields: Set[str] = set()
    depth = 0
    segment = ""
    for char in body:
        if char in "{[(":
            depth += 1
        elif char in "}])":
            depth -= 1
        if depth == 0 and char in ";,\n":
            match = _FIELD.match(segment)
            if match:
                fields.add(match.group("name"))
            segment = ""
            continue
        segment += char
    match = _FIELD.match(segment)
    if match:
        fields.add(match.group("name"))
    return fields


class TypeScriptModelLookup:
    """
    Scans a TypeScript model for object types. Both named declarations
    (`export type OrderPlaced = { ... }`, `export interface OrderPlaced { ... }`)
    and union members tagged with a `kind: 'OrderPlaced'` literal are indexed.
    This is a declaration scanner, not a type checker: intersections, mapped
    types and imported types are not followed.
    """

    def __init__(self, types: Dict[str, Set[str]]):
        self.types = types

    @classmethod
    def from_source(cls, source: str) -> "TypeScriptModelLookup":
        text = _strip_comments(source)
        types: Dict[str, Set[str]] = {}
        for match in _DECLARATION.finditer(text):
            name = match.group("type") or match.group("iface")
            open_index = match.end() - 1
            close_index = _match_brace(text, open_index)
            types[name] = _top_level_fields(text[open_index + 1:close_index])

        # tagged object literals inside unions: { kind: 'OrderPlaced'; orderId: ... }
        for match in _KIND_LITERAL.finditer(text):
            open_index = _enclosing_brace(text, match.start())
            if open_index < 0:
                continue
            close_index = _match_brace(text, open_index)
            types.setdefault(match.group("kind"), _top_level_fields(text[open_index + 1:close_index]))
        return cls(types)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "TypeScriptModelLookup":
        path = Path(path)
        with path.open("r", encoding="utf-8") as f:
            lookup = cls.from_source(f.read())
        logger.debug("Indexed %d type(s) from %s", len(lookup.types), path)
        return lookup

    def fields_of(self, event: str) -> Optional[Set[str]]:
        found = self.types.get(event)
        return set(found) if found is not None else None


class CompositeFieldLookup:
    """First lookup that knows the event wins."""

    def __init__(self, lookups: Iterable[EventFieldLookup]):
        self.lookups: List[EventFieldLookup] = list(lookups)

    def fields_of(self, event: str) -> Optional[Set[str]]:
        for lookup in self.lookups:
            found = lookup.fields_of(event)
            if found is not None:
                return found
        return None


def lookup_from_sources(sources: Iterable, model_root: Optional[Union[str, Path]] = None) -> Optional[CompositeFieldLookup]:
    """
    Builds a lookup from the `model:` files referenced by loaded documents.
    Paths resolve against `model_root` when given, else against each
    document's own directory. Unreadable or non-TypeScript models are skipped.
    """
    lookups: List[EventFieldLookup] = []
    seen: Set[Path] = set()
    for source in sources:
        data = source.data if hasattr(source, "data") else source
        if not isinstance(data, dict) or not isinstance(data.get("model"), str):
            continue
        base = Path(model_root) if model_root else (source.path.parent if getattr(source, "path", None) else Path("."))
        model_path = (base / data["model"]).resolve()
        if model_path in seen or model_path.suffix not in (".ts", ".tsx"):
            continue
        seen.add(model_path)
        try:
            lookups.append(TypeScriptModelLookup.from_file(model_path))
        except OSError as e:
            logger.warning("Cannot read model %s: %s", model_path, e)
    return CompositeFieldLookup(lookups) if lookups else None
