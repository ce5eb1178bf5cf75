import signal
from typing import Optional

import click

from jsls.cli.utils import configure_logging, get_env_default_dialect, output_error
from jsls.lsp.server import JSLSPServer
from jsls.lsp.utils.dialects import DialectRegistry


@click.command(name="lsp")
@click.option("--port", type=int, help="Port number for LSP server (defaults to 3000)")
@click.option("--host", default="localhost", help="Host to bind to when using TCP mode (defaults to localhost)")
@click.option("--tcp", is_flag=True, help="Use TCP instead of stdio for LSP communication")
@click.option("--default-dialect", help="Dialect to assume for schemas without $schema")
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def lsp(port: Optional[int], host: str, tcp: bool, default_dialect: Optional[str], debug: bool):
    """Start the JSON Schema language server.

    The server validates JSON Schema documents against their dialect's
    meta-schema and completes $schema dialect URIs and schema keywords.

    By default, the server uses stdio for communication (suitable for IDE integration).
    Use --tcp flag for testing or when stdio communication is not suitable.

    Examples:
        jsls lsp                     # Start LSP server using stdio
        jsls lsp --tcp               # Start LSP server using TCP on localhost:3000
        jsls lsp --tcp --port 4000   # Start LSP server using TCP on localhost:4000
        jsls lsp --default-dialect https://json-schema.org/draft/2020-12/schema
        jsls lsp --debug             # Start with detailed debug logging
    """
    # Get values from environment variables if not set by flags
    if not default_dialect:
        default_dialect = get_env_default_dialect()

    # Configure logging
    configure_logging(debug)

    try:
        if default_dialect and not DialectRegistry().has_dialect(default_dialect):
            raise click.BadParameter(f"Unknown dialect: {default_dialect}", param_hint="--default-dialect")

        final_port = port or 3000

        # Set up signal handler for graceful shutdown
        def signal_handler(signum, frame):
            raise KeyboardInterrupt()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        server = JSLSPServer(default_dialect=default_dialect, port=final_port)

        if tcp:
            click.echo(f"Starting JSON Schema LSP server on {host}:{final_port}", err=True)
            server.start(host=host, use_tcp=True)
        else:
            server.start(host=host, use_tcp=False)

    except KeyboardInterrupt:
        # Server was stopped gracefully
        click.echo("\nLSP server stopped", err=True)
    except Exception as e:
        output_error(e, debug=debug)
