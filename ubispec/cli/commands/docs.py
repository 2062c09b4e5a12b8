# ubispec/cli/commands/docs.py

from typing import Optional

import typer

from ubispec.cli.output import fail
from ubispec.docs import schema_reference
from ubispec.errors import UnknownSpecKindError


def docs(
    kind: str = typer.Argument(..., help="Spec kind (lifecycle, process, system)"),
    out: Optional[str] = typer.Option(None, "--out", help="Output file path"),
):
    """
    Prints the schema reference for one spec kind as Markdown.
    """
    try:
        page = schema_reference(kind)
    except UnknownSpecKindError as e:
        fail(str(e))

    if out:
        with open(out, "w", encoding="utf-8") as f:
            f.write(page)
        print(f"Exported to {out}")
    else:
        print(page)
