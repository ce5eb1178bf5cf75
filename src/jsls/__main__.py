import click

from jsls import __version__
from jsls.cli.lsp import lsp


@click.group(invoke_without_command=True)
@click.version_option(__version__, prog_name="jsls")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """JSON Schema language server CLI"""
    # Show help when no subcommand is provided
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(lsp)


if __name__ == "__main__":
    cli()
