from __future__ import annotations

import typer

from shipline import __version__
from shipline.cli.commands.release_cmd import plan, release, smoke, version

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


app.command()(release)
app.command("version")(version)
app.command()(plan)
app.command()(smoke)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    show_version: bool = typer.Option(False, "--version", help="Show version and exit."),
) -> None:
    if show_version:
        typer.echo(__version__)
        raise typer.Exit(code=0)


def main() -> None:
    app()
