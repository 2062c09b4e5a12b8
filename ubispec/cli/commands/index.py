# ubispec/cli/commands/index.py

import typer

from ubispec.cli.output import emit_json
from ubispec.schema.versions import spec_index


def index(
    pretty: bool = typer.Option(False, "--pretty", help="Human-readable JSON"),
):
    """
    Prints the index of supported formats and versions.
    """
    emit_json(spec_index(), pretty)
