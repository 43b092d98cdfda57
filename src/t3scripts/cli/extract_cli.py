"""
t3-ext-extract: decode a TYPO3 extension archive and write its files to disk.

The extension is either an archive file, or the key of an extension installed
below --base, in which case the matching archive is retrieved from the
extension repository.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import typer

from t3scripts.archive import ManifestMaterializer, dump_value_tree, parse_container
from t3scripts.cli.common import (
    CONTEXT_SETTINGS,
    common_overrides,
    configure_logging,
    fail,
    load_settings,
    print_exported_config,
    report_error,
    require_extension,
    run_app,
    run_self_update,
    run_update_check,
)
from t3scripts.core.errors import DestinationExists, FetchError, T3ScriptsError
from t3scripts.core.settings import EXIT_FAILURE, EXIT_OK
from t3scripts.repository import (
    fetch_extension_archive,
    installed_extension_dir,
    resolve_extension_version,
)
from t3scripts.schemas.settings import ExtractSettings

logger = logging.getLogger(__name__)

SCRIPT_NAME = "t3-ext-extract"

app = typer.Typer(help="Extract the contents of TYPO3 extension archives (T3X).",
                  add_completion=False, context_settings=CONTEXT_SETTINGS)


def acquire_archive(settings: ExtractSettings) -> Tuple[bytes, str]:
    """
    Get the archive bytes for the configured extension.

    Returns:
        (archive bytes, archive name used for messages and the default
        output directory)
    """
    candidate = Path(settings.extension)
    if candidate.is_file():
        try:
            return candidate.read_bytes(), str(candidate)
        except OSError as e:
            raise FetchError(f"Unable to open '{candidate}': {e.strerror or e}") from e

    key = settings.extension
    version = resolve_extension_version(settings.base, key, settings.force_version)
    logger.info(f"Retrieving original extension file for '{installed_extension_dir(settings.base, key)}'...")
    data = fetch_extension_archive(key, version, settings.repository_url, settings.fetch_timeout)
    return data, f"{key}_{version}.t3x"


def run_extraction(settings: ExtractSettings) -> int:
    """Decode, dump and extract as configured. Returns the exit code."""
    require_extension(settings.extension)
    data, archive_name = acquire_archive(settings)

    output_dir = Path(settings.outputdir or f"{archive_name}-extracted")
    if settings.extract and output_dir.exists():
        raise DestinationExists(f"The target directory '{output_dir}' already exists.")

    logger.info(f"Extracting file '{archive_name}'...")
    manifest = parse_container(data, source=archive_name)

    if settings.dump:
        dump_value_tree(manifest, settings.string_limit, echo=typer.echo)

    if not settings.extract:
        logger.info("Extraction skipped.")
        return EXIT_OK

    report = ManifestMaterializer(output_dir).materialize(manifest)
    if not report.succeeded:
        report_error(report.summary())
        return EXIT_FAILURE
    logger.info(f"Done. {report.summary()}")
    return EXIT_OK


@app.command()
def extract(
    extension: Optional[str] = typer.Argument(
        None, metavar="[EXTKEY|FILE]", help="Extension key or archive file (same as --extension)."),
    extension_option: Optional[str] = typer.Option(
        None, "--extension", metavar="EXTKEY", help="The extension key or archive file to operate on."),
    base: Optional[str] = typer.Option(
        None, "--base", metavar="PATH",
        help='The base path where TYPO3 is installed. If no base is supplied, "typo3" is used.'),
    output_dir: Optional[str] = typer.Option(
        None, "--output-dir", metavar="DIRECTORY",
        help="The directory to where the extension should be extracted."),
    force_version: Optional[str] = typer.Option(
        None, "--force-version", metavar="VERSION",
        help="Retrieve this version from the repository instead of the installed one."),
    dump: bool = typer.Option(
        False, "--dump", help="Print a dump of the extension's data structure (skips extraction)."),
    extract_files: bool = typer.Option(
        False, "--extract", help="Extract even if other commands were invoked."),
    string_limit: Optional[int] = typer.Option(
        None, "--string-limit", metavar="N", min=0,
        help="Longest string printed literally by --dump, 0 for no limit."),
    export_config: bool = typer.Option(
        False, "--export-config", help="Print the default configuration of this script."),
    update: bool = typer.Option(False, "--update", help="Update the script to the latest version."),
    update_check: bool = typer.Option(
        False, "--update-check", help="Check if a newer version of the script is available."),
    verbose: bool = typer.Option(False, "--verbose", help="Display more detailed messages."),
    quiet: bool = typer.Option(False, "--quiet", help="Only display errors."),
):
    """
    Extract a TYPO3 extension archive.
    """
    configure_logging(verbose, quiet)
    if export_config:
        print_exported_config(ExtractSettings)
        return

    overrides = common_overrides(extension, extension_option, base, force_version, verbose, quiet)
    if output_dir is not None:
        overrides.append(("OUTPUTDIR", output_dir))
    if dump:
        overrides.extend([("DUMP", "true"), ("EXTRACT", "false")])
    if extract_files:
        overrides.append(("EXTRACT", "true"))
    if string_limit is not None:
        overrides.append(("STRING_LIMIT", str(string_limit)))

    try:
        settings = load_settings(ExtractSettings, SCRIPT_NAME, overrides)

        if update_check:
            raise typer.Exit(code=run_update_check(settings))
        if update:
            run_self_update(settings)
            return

        code = run_extraction(settings)
    except T3ScriptsError as e:
        raise fail(e)
    if code:
        raise typer.Exit(code=code)


def main():
    sys.exit(run_app(app, SCRIPT_NAME))


if __name__ == "__main__":
    main()
