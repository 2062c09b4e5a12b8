# ubispec/docs.py
"""
Schema reference pages generated from the pydantic field descriptions:
one `| Field | Type | Description |` table per document object.
"""

import re
import typing
from enum import Enum
from typing import Any, Dict, Iterator, List, Type, Union

from pydantic import BaseModel

from ubispec.errors import UnknownSpecKindError
from ubispec.schema.lifecycle import LifecycleSpec
from ubispec.schema.process import ProcessSpec
from ubispec.schema.system import SystemSpec
from ubispec.schema.versions import FORMATS, SpecKind

# Parse-time bookkeeping that never appears in a document.
_INTERNAL_FIELDS = {"then_scalar", "kind", "explicit", "keyed", "sections"}

_ROOTS: Dict[SpecKind, Type[BaseModel]] = {
    SpecKind.LIFECYCLE: LifecycleSpec,
    SpecKind.PROCESS: ProcessSpec,
    SpecKind.SYSTEM: SystemSpec,
}


def to_anchor(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def infer_type(annotation: Any) -> str:
    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)
    if origin is typing.Annotated:
        return infer_type(args[0])
    if origin is Union:
        options = [a for a in args if a is not type(None)]
        if len(options) == 1:
            return infer_type(options[0])
        return " \\| ".join(infer_type(a) for a in options)
    if origin in (tuple, list):
        inner = args[0] if args else Any
        return f"\\[{infer_type(inner)}\\]"
    if origin is dict:
        return f"Map\\<{infer_type(args[0])}, {infer_type(args[1])}\\>"
    if annotation is str:
        return "`string`"
    if annotation is bool:
        return "`boolean`"
    if annotation is int:
        return "`number`"
    if isinstance(annotation, type) and issubclass(annotation, Enum):
        return " \\| ".join(f'`"{member.value}"`' for member in annotation)
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return f"[{annotation.__name__}](#{to_anchor(annotation.__name__)})"
    return "`any`"


def _linked_models(annotation: Any) -> Iterator[Type[BaseModel]]:
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        yield annotation
        return
    for arg in typing.get_args(annotation):
        yield from _linked_models(arg)


def page_models(root: Type[BaseModel]) -> List[Type[BaseModel]]:
    """The root model followed by every model its visible fields link to, breadth first."""
    models: List[Type[BaseModel]] = [root]
    for model in models:
        for name, info in model.model_fields.items():
            if name in _INTERNAL_FIELDS:
                continue
            for linked in _linked_models(info.annotation):
                if linked not in models:
                    models.append(linked)
    return models


def model_table(title: str, model: Type[BaseModel]) -> str:
    lines = [f"## {title}", ""]
    doc = (model.__doc__ or "").strip()
    if doc:
        lines.extend([doc.splitlines()[0], ""])
    lines.extend(["| Field | Type | Description |", "|-------|------|-------------|"])
    for name, info in model.model_fields.items():
        if name in _INTERNAL_FIELDS:
            continue
        prefix = "**Required.** " if info.is_required() else ""
        lines.append(f"| `{info.alias or name}` | {infer_type(info.annotation)} | {prefix}{info.description or ''} |")
    lines.append("")
    return "\n".join(lines)


def schema_reference(kind: Union[SpecKind, str]) -> str:
    try:
        kind = SpecKind(kind)
    except ValueError:
        raise UnknownSpecKindError(f"Unknown spec kind '{kind}'. Known: {', '.join(k.value for k in SpecKind)}") from None
    fmt = FORMATS[kind]
    latest = fmt.latest_stable
    version = f" {latest.label}" if latest else ""
    parts: List[str] = [f"# {kind.value.capitalize()} UbiSpec{version} Schema Reference", "", fmt.description, ""]
    parts.extend(model_table(model.__name__, model) for model in page_models(_ROOTS[kind]))
    return "\n".join(parts)
