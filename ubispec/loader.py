"""
Reads spec documents from disk. YAML is parsed with a safe loader that
follows YAML 1.2 booleans; `.json` files go through the json module. The
raw text is kept alongside the data because `# shell:` hints live in YAML
comments.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import yaml

from ubispec.errors import DocumentLoadError, format_path

logger = logging.getLogger(__name__)

SPEC_SUFFIXES = (".yaml", ".yml", ".json")

SHELL_HINT = re.compile(r"#\s*shell:\s*(?P<hint>.+?)\s*$")
_PREDICATE_KEY = re.compile(r"^\s*(?:-\s+)?(?P<name>[a-z][a-z0-9]*(?:-[a-z0-9]+)*)\s*:")

_BOOL_TAG = "tag:yaml.org,2002:bool"


class SpecLoader(yaml.SafeLoader):
    """
    SafeLoader that only reads true/false as booleans. YAML 1.1 also turns
    on/off/yes/no into booleans, which breaks the Flow `on:` key.
    """


SpecLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _BOOL_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
SpecLoader.add_implicit_resolver(
    _BOOL_TAG,
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


def load_yaml(stream: Any) -> Any:
    return yaml.load(stream, Loader=SpecLoader)


@dataclass
class SourceDocument:
    name: str
    data: Any
    text: str = ""
    path: Optional[Path] = None
    shell_hints: Dict[str, str] = field(default_factory=dict)
    hint_locations: Dict[str, str] = field(default_factory=dict)


def _hinted_lines(text: str) -> Dict[int, Tuple[str, str]]:
    # line index -> (predicate name, hint)
    lines: Dict[int, Tuple[str, str]] = {}
    pending: Optional[str] = None
    for index, line in enumerate(text.splitlines()):
        hint_match = SHELL_HINT.search(line)
        code = line[: hint_match.start()] if hint_match else line
        key_match = _PREDICATE_KEY.match(code)
        if key_match:
            name = key_match.group("name")
            if hint_match:
                lines[index] = (name, hint_match.group("hint"))
            elif pending is not None:
                lines[index] = (name, pending)
            pending = None
        elif hint_match and not code.strip():
            pending = hint_match.group("hint")
        elif code.strip():
            pending = None
    return lines


def extract_shell_hints(text: str) -> Dict[str, str]:
    """
    Maps predicate name -> hint for every `# shell: <hint>` comment. A hint
    applies to the predicate on the same line, or to the next predicate when
    the comment stands on its own line. When one name carries different
    hints in several places the first one is kept here; use
    `locate_shell_hints` to tell them apart.
    """
    hints: Dict[str, str] = {}
    for name, hint in _hinted_lines(text).values():
        if name in hints and hints[name] != hint:
            logger.warning(
                "Predicate %s has several shell hints (%s, %s); keyed by location instead",
                name, hints[name], hint,
            )
            continue
        hints[name] = hint
    return hints


def _item_lines(node: yaml.Node, path: Tuple[Any, ...], out: List[Tuple[int, Tuple[Any, ...]]]) -> None:
    if isinstance(node, yaml.MappingNode):
        for key, value in node.value:
            _item_lines(value, (*path, key.value), out)
    elif isinstance(node, yaml.SequenceNode):
        for i, item in enumerate(node.value):
            out.append((item.start_mark.line, (*path, i)))
            _item_lines(item, (*path, i), out)


def locate_shell_hints(text: str) -> Dict[str, str]:
    """
    Maps the location of each hinted predicate entry (as in
    `lifecycle[0].Then[1].HighValueOrderFlagged[0]`) to its hint.
    """
    lines = _hinted_lines(text)
    if not lines:
        return {}
    root = yaml.compose(text, Loader=SpecLoader)
    items: List[Tuple[int, Tuple[Any, ...]]] = []
    if root is not None:
        _item_lines(root, (), items)
    return {format_path(path): lines[line][1] for line, path in items if line in lines}


def parse_text(text: str, name: str = "<string>", suffix: str = ".yaml") -> SourceDocument:
    try:
        if suffix == ".json":
            data = json.loads(text)
        else:
            data = load_yaml(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise DocumentLoadError(f"{name}: cannot parse document: {e}") from e
    if suffix == ".json":
        return SourceDocument(name=name, data=data, text=text)
    return SourceDocument(
        name=name,
        data=data,
        text=text,
        shell_hints=extract_shell_hints(text),
        hint_locations=locate_shell_hints(text),
    )


def load_document(path: Union[str, Path]) -> SourceDocument:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise DocumentLoadError(f"Cannot read {path}: {e}") from e
    document = parse_text(text, name=str(path), suffix=path.suffix.lower())
    document.path = path
    logger.debug("Loaded %s (%d shell hint(s))", path, len(document.shell_hints))
    return document


def load_documents(paths: Iterable[Union[str, Path]]) -> List[SourceDocument]:
    """
    Loads files and directories. Directories are searched recursively and
    files in them without a `ubispec` field are skipped; files named
    explicitly are always returned.
    """
    documents: List[SourceDocument] = []
    for raw in paths:
        path = Path(raw)
        if path.is_file():
            documents.append(load_document(path))
            continue
        if not path.is_dir():
            raise DocumentLoadError(f"No such file or directory: {path}")
        for candidate in sorted(path.rglob("*")):
            if not candidate.is_file() or candidate.suffix.lower() not in SPEC_SUFFIXES:
                continue
            document = load_document(candidate)
            if not isinstance(document.data, dict) or "ubispec" not in document.data:
                logger.info("Skipping %s: no `ubispec` field", candidate)
                continue
            documents.append(document)
    return documents
