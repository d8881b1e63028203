"""Command-line interface for ulpcn"""

import typer
from rich.console import Console
from rich.logging import RichHandler
import logging

console = Console(stderr=True)
logging.basicConfig(level="INFO", handlers=[RichHandler(console=console, show_time=True, show_path=False)], format="%(message)s")

app = typer.Typer(
    help="ulpcn: read-depth bias correction and copy-number correction for ULP-WGS.",
    invoke_without_command=True,
)

from ulpcn.correct import correct
from ulpcn.call_cn import correct_cn
from ulpcn.pon.build import build_pon
from ulpcn import __version__

app.command()(correct)
app.command(name="correct-cn")(correct_cn)
app.command(name="build-pon")(build_pon)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-V", help="Show version and exit"),
):
    """ulpcn: ULP-WGS read-depth and copy-number correction."""
    if version:
        typer.echo(f"ulpcn {__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


if __name__ == "__main__":
    app()
