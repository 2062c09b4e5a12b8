# ubispec/cli/app.py

import typer
from ubispec.cli.output import configure_logging
from ubispec.cli.commands.validate import validate
from ubispec.cli.commands.derive import derive_app
from ubispec.cli.commands.docs import docs
from ubispec.cli.commands.index import index

app = typer.Typer(help="UbiSpec CLI - validate behavioral specs and derive artifacts")


@app.callback()
def callback(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    configure_logging(verbose)


app.command()(validate)
app.command()(docs)
app.command()(index)
app.add_typer(derive_app, name="derive")

def main():
    app()

if __name__ == "__main__":
    main()
