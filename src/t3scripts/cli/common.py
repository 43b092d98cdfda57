"""
Helpers shared by the t3scripts command line tools: logging, error output,
configuration loading, update handling and the process entry point.
"""

import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Type, Union

import typer
from rich.console import Console
from rich.markup import escape

from t3scripts.core.config import ConfigurationResolver, UnknownKeyPolicy, export_configuration
from t3scripts.core.errors import T3ScriptsError, UsageError
from t3scripts.core.settings import (
    CONFIG_FILE_SUFFIX,
    EXIT_FAILURE,
    EXIT_OK,
    EXIT_UPDATE_AVAILABLE,
    EXIT_UPDATE_UNLISTED,
    GLOBAL_CONFIG_FILENAME,
)
from t3scripts.schemas.settings import ScriptSettings
from t3scripts.update import UpdateStatus, apply_update, check_for_update

logger = logging.getLogger(__name__)
# Errors go to stderr and are shown even in quiet mode
console = Console(stderr=True)

LOG_FORMAT = "%(levelname)s %(name)s - %(message)s"
CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}

# Depending on its version, typer parses with click or with its own bundled
# copy of it. BadParameter is exported either way and lives next to the rest.
_parser_errors = importlib.import_module(typer.BadParameter.__module__)

Overrides = List[Tuple[str, str]]


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)


def report_error(error: Union[str, Exception]) -> None:
    console.print(f"[bold red]Error:[/bold red] {escape(str(error))}", soft_wrap=True)


def config_paths(script_name: str, directory: Optional[Path] = None) -> Tuple[Path, Path]:
    """Global and script-specific config file locations."""
    directory = Path.cwd() if directory is None else Path(directory)
    return directory / GLOBAL_CONFIG_FILENAME, directory / f"{script_name}{CONFIG_FILE_SUFFIX}"


def load_settings(settings_cls: Type[ScriptSettings], script_name: str,
                  overrides: Sequence[Tuple[str, str]]) -> ScriptSettings:
    """
    Resolve defaults, config files and command line overrides into settings,
    and set up logging for them.

    The global file is shared by scripts with different keys, so unknown keys
    in config files are skipped rather than rejected.
    """
    global_file, local_file = config_paths(script_name)
    resolver = ConfigurationResolver(settings_cls.config_defaults(), UnknownKeyPolicy.IGNORE)
    configuration = resolver.resolve(global_file, local_file, overrides)
    settings = settings_cls.from_configuration(configuration)
    # VERBOSE and QUIET may come from a config file
    configure_logging(settings.verbose, settings.quiet)
    for key, value in configuration.items():
        logger.debug(f"{key}={value} ({configuration.origin(key)})")
    return settings


def print_exported_config(settings_cls: Type[ScriptSettings]) -> None:
    text = export_configuration(settings_cls.config_defaults(), settings_cls.config_descriptions())
    typer.echo(text, nl=False)


def common_overrides(extension: Optional[str], extension_option: Optional[str],
                     base: Optional[str], force_version: Optional[str],
                     verbose: bool, quiet: bool) -> Overrides:
    """Overrides for the options every script shares."""
    overrides: Overrides = []
    if base is not None:
        overrides.append(("BASE", base))
    # --extension wins over the positional key
    if extension is not None:
        overrides.append(("EXTENSION", extension))
    if extension_option is not None:
        overrides.append(("EXTENSION", extension_option))
    if force_version is not None:
        overrides.append(("FORCE_VERSION", force_version))
    if verbose:
        overrides.append(("VERBOSE", "true"))
    if quiet:
        overrides.append(("QUIET", "true"))
    return overrides


def require_extension(extension: str) -> str:
    """
    Raises:
        UsageError: If no extension was given, or it looks like an option
    """
    if not extension:
        raise UsageError("No extension given. Use --extension=EXTKEY or pass it as argument.")
    if extension.startswith("--"):
        raise UsageError(
            f"The given extension key '{extension}' looks like a command line parameter. "
            "Please use the --extension parameter when giving multiple arguments."
        )
    return extension


def script_path() -> Path:
    return Path(sys.argv[0]).resolve()


def run_update_check(settings: ScriptSettings, path: Optional[Path] = None) -> int:
    """Check for a newer version; returns the exit code to use."""
    path = path or script_path()
    status = check_for_update(path, settings.update_base, settings.fetch_timeout)
    if status == UpdateStatus.UNLISTED:
        logger.warning(f"No update information is available for '{path.name}'.")
        return EXIT_UPDATE_UNLISTED
    if status == UpdateStatus.AVAILABLE:
        logger.warning("NOTE: New version available!")
        return EXIT_UPDATE_AVAILABLE
    logger.info(f"{path.name} is up to date.")
    return EXIT_OK


def run_self_update(settings: ScriptSettings, path: Optional[Path] = None) -> None:
    path = path or script_path()
    logger.info("Performing self-update...")
    apply_update(path, settings.update_base, settings.fetch_timeout)
    logger.info("Update complete.")


def fail(error: T3ScriptsError) -> typer.Exit:
    """Report ``error`` and return the Exit to raise."""
    report_error(error)
    return typer.Exit(code=error.exit_code)


def run_app(app: typer.Typer, prog_name: str, argv: Optional[Sequence[str]] = None) -> int:
    """
    Run a typer app and return its exit code instead of exiting.

    Usage errors detected while parsing exit with 1, like every other fatal
    error of the scripts.
    """
    try:
        result = app(args=list(argv) if argv is not None else None, prog_name=prog_name,
                     standalone_mode=False)
    except _parser_errors.ClickException as e:
        e.show()
        return EXIT_FAILURE
    except typer.Abort:
        report_error("Aborted.")
        return EXIT_FAILURE
    return result if isinstance(result, int) else EXIT_OK
