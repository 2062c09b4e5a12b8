# ubispec/cli/output.py

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, List, NoReturn, Optional, Tuple

import typer

from ubispec.config import ConfigError, ValidationConfig, load_config
from ubispec.errors import UbiSpecError
from ubispec.loader import SourceDocument, load_document, load_documents
from ubispec.model_types import lookup_from_sources
from ubispec.schema.document import parse_document
from ubispec.schema.result import ParseResult
from ubispec.validation.report import SpecSet, validate_documents

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class OutputFormat(str, Enum):
    JSON = "json"
    MARKDOWN = "markdown"
    TEXT = "text"
    MERMAID = "mermaid"
    DOT = "dot"


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)


def emit_json(data: Any, pretty: bool = False) -> None:
    if pretty:
        print(json.dumps(data, indent=2, ensure_ascii=False))
    else:
        print(json.dumps(data, ensure_ascii=False))


def fail(message: str) -> NoReturn:
    typer.echo(message, err=True)
    raise typer.Exit(code=1)


def read_config(path: Optional[Path]) -> ValidationConfig:
    try:
        return load_config(path)
    except ConfigError as e:
        fail(str(e))


def load_one(path: Path, config: ValidationConfig) -> Tuple[SourceDocument, Any]:
    """Loads and parses one document; exits on load errors or blocking issues."""
    try:
        source: SourceDocument = load_document(path)
    except UbiSpecError as e:
        fail(str(e))
    result: ParseResult = parse_document(source.data, source.name, check_coverage=config.check_outcome_coverage)
    if not result.ok:
        for issue in result.errors:
            typer.echo(str(issue), err=True)
        fail(f"{source.name}: not validated, {len(result.errors)} blocking issue(s)")
    return source, result.spec


def load_set(paths: List[Path], config: ValidationConfig, models: bool = True) -> SpecSet:
    try:
        sources = load_documents(paths)
    except UbiSpecError as e:
        fail(str(e))
    lookup = lookup_from_sources(sources, config.model_root) if models else None
    return validate_documents(sources, config, lookup)
