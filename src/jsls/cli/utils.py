import logging
import os
import traceback
from typing import Optional

import click

TRUTHY_VALUES = ("1", "true", "yes", "on")

# Loggers that talk too much at INFO for an editor's output panel
NOISY_LOGGERS = ("pygls", "asyncio")


def get_env_flag(env_var: str, default: bool = False) -> bool:
    """Read a boolean switch such as ``JSLS_DEBUG`` from the environment.

    Unset or empty variables give ``default``; anything else is true only
    when it is one of ``TRUTHY_VALUES`` (any case).
    """
    raw = os.environ.get(env_var)
    if not raw:
        return default
    return raw.strip().lower() in TRUTHY_VALUES


def get_env_default_dialect() -> Optional[str]:
    """Dialect URI from ``JSLS_DEFAULT_DIALECT``, if set."""
    return os.environ.get("JSLS_DEFAULT_DIALECT") or None


def configure_logging(debug: bool = False) -> None:
    """Send server logs to stderr.

    stdout carries the protocol in stdio mode, so nothing may log there.

    Args:
        debug: Log everything, including protocol traffic from pygls.
            ``JSLS_DEBUG`` turns this on as well.
    """
    debug = debug or get_env_flag("JSLS_DEBUG")
    level = logging.DEBUG if debug else logging.WARNING

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(levelname)s:%(name)s:%(message)s"))

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if debug else logging.ERROR)


def output_error(error: Exception, debug: bool = False) -> None:
    """Print a startup error on stderr and abort the command.

    Raises:
        click.Abort: Always
    """
    click.echo(f"Error: {error}", err=True)
    if debug:
        click.echo(f"\n{error.__class__.__name__} traceback:", err=True)
        click.echo(traceback.format_exc(), err=True)

    raise click.Abort()
