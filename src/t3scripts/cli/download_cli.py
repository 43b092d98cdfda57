"""
t3-ext-download: retrieve the archive of an extension from the repository.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import typer

from t3scripts.archive import iter_file_entries, parse_container
from t3scripts.cli.common import (
    CONTEXT_SETTINGS,
    common_overrides,
    configure_logging,
    fail,
    load_settings,
    print_exported_config,
    require_extension,
    run_app,
    run_self_update,
    run_update_check,
)
from t3scripts.core.errors import DestinationExists, FileWriteError, T3ScriptsError
from t3scripts.repository import fetch_extension_archive, resolve_extension_version
from t3scripts.schemas.settings import DownloadSettings

logger = logging.getLogger(__name__)

SCRIPT_NAME = "t3-ext-download"

app = typer.Typer(help="Download TYPO3 extension archives (T3X) from the extension repository.",
                  add_completion=False, context_settings=CONTEXT_SETTINGS)


def run_download(settings: DownloadSettings) -> Path:
    """Fetch, verify and store the configured extension archive."""
    key = require_extension(settings.extension)
    version = resolve_extension_version(settings.base, key, settings.force_version)

    target = Path(settings.output_file or f"{key}_{version}.t3x")
    if target.exists() and not settings.force:
        raise DestinationExists(f"'{target}' already exists. Use --force to overwrite it.")

    data = fetch_extension_archive(key, version, settings.repository_url, settings.fetch_timeout)
    # Don't store something we couldn't extract later
    manifest = parse_container(data, source=f"{key}_{version}.t3x")
    file_count = len(iter_file_entries(manifest))

    try:
        target.write_bytes(data)
    except OSError as e:
        raise FileWriteError(target, f"Failed to write file '{target}': {e.strerror or e}") from e

    logger.info(f"Saved {key} {version} ({file_count} files, {len(data)} bytes) to '{target}'")
    return target


@app.command()
def download(
    extension: Optional[str] = typer.Argument(
        None, metavar="[EXTKEY]", help="Extension key (same as --extension)."),
    extension_option: Optional[str] = typer.Option(
        None, "--extension", metavar="EXTKEY", help="The extension key to download."),
    base: Optional[str] = typer.Option(
        None, "--base", metavar="PATH",
        help='The base path where TYPO3 is installed. If no base is supplied, "typo3" is used.'),
    force_version: Optional[str] = typer.Option(
        None, "--force-version", metavar="VERSION",
        help="Download this version instead of the installed one."),
    output_file: Optional[str] = typer.Option(
        None, "--output-file", metavar="NAME",
        help="The file the archive is saved to. Defaults to EXTKEY_VERSION.t3x."),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing output file."),
    export_config: bool = typer.Option(
        False, "--export-config", help="Print the default configuration of this script."),
    update: bool = typer.Option(False, "--update", help="Update the script to the latest version."),
    update_check: bool = typer.Option(
        False, "--update-check", help="Check if a newer version of the script is available."),
    verbose: bool = typer.Option(False, "--verbose", help="Display more detailed messages."),
    quiet: bool = typer.Option(False, "--quiet", help="Only display errors."),
):
    """
    Download a TYPO3 extension archive.
    """
    configure_logging(verbose, quiet)
    if export_config:
        print_exported_config(DownloadSettings)
        return

    overrides = common_overrides(extension, extension_option, base, force_version, verbose, quiet)
    if output_file is not None:
        overrides.append(("OUTPUT_FILE", output_file))
    if force:
        overrides.append(("FORCE", "true"))

    try:
        settings = load_settings(DownloadSettings, SCRIPT_NAME, overrides)

        if update_check:
            raise typer.Exit(code=run_update_check(settings))
        if update:
            run_self_update(settings)
            return

        run_download(settings)
    except T3ScriptsError as e:
        raise fail(e)


def main():
    sys.exit(run_app(app, SCRIPT_NAME))


if __name__ == "__main__":
    main()
