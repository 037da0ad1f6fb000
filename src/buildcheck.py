"""buildcheck - Check Maven and Gradle build files for artifact updates

    Returns:
        int: Exit code
"""
import csv
import json
import logging
import sys
from pathlib import Path

from args import parse_args
from builds.resolver import BuildResolveError
from cli_config import apply_cli_overrides, apply_config_file, ConfigError, load_config_file
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import ExitCodes, OutputFormats
from filters.artifact import ACCEPT_ALL
from filters.parser import ArtifactFilterParseError, parse_expressions
from service import Service
from versioning.resolvers.base import ArtifactAvailableVersionsResolveError

logger = logging.getLogger(__name__)

EXPORT_HEADERS = [
    "Build File",
    "Artifact Type",
    "Group ID",
    "Artifact ID",
    "Version",
    "Version Inherited",
    "Update Version",
]


def format_artifact_type(artifact_type):
    """Render an artifact type the way it is printed, ``PARENT_POM`` as ``PARENT POM``."""
    return artifact_type.name.replace("_", " ")


def format_update(artifact_update):
    """Render one update line, inherited versions wrapped in parentheses."""
    artifact = artifact_update.artifact
    line = f"{artifact.identifier} {artifact.version} -> {artifact_update.update_version}"
    if artifact.version_inherited:
        line = f"({line})"
    return f"[{format_artifact_type(artifact.type)}] {line}"


def format_summary(checked, total, updates):
    """Render the run-level summary line."""
    available = f"{updates} artifact update(s) available" if updates else "no artifact update available"
    return f"{checked}/{total} build file(s) checked, {available}"


def format_error(exc):
    return f"{type(exc).__name__}: {exc}".rstrip()


def _rows(results):
    for build_file, updates in results:
        for update in updates:
            artifact = update.artifact
            yield [
                str(build_file.file),
                artifact.type.name,
                artifact.identifier.group_id,
                artifact.identifier.artifact_id,
                artifact.version,
                artifact.version_inherited,
                update.update_version,
            ]


def export_csv(results, path):
    """Exports the artifact updates to a CSV file.

    Args:
        results (list): List of (build file, updates) pairs.
        path (str): File path to export the CSV.
    """
    rows = [EXPORT_HEADERS]
    rows.extend(_rows(results))
    try:
        with open(path, 'w', newline='', encoding='utf-8') as file:
            export = csv.writer(file)
            export.writerows(rows)
        logging.info("CSV file has been successfully exported at: %s", path)
    except (OSError, csv.Error) as e:
        logging.error("CSV file couldn't be written to disk: %s", e)
        sys.exit(ExitCodes.FILE_ERROR.value)


def export_json(results, path):
    """Exports the artifact updates to a JSON file.

    Args:
        results (list): List of (build file, updates) pairs.
        path (str): File path to export the JSON.
    """
    data = []
    for build_file, updates in results:
        data.append({
            "buildFile": str(build_file.file),
            "buildFileType": build_file.type.name,
            "updates": [
                {
                    "artifactType": update.artifact.type.name,
                    "groupId": update.artifact.identifier.group_id,
                    "artifactId": update.artifact.identifier.artifact_id,
                    "version": update.artifact.version,
                    "versionInherited": update.artifact.version_inherited,
                    "updateVersion": update.update_version,
                }
                for update in updates
            ],
        })
    try:
        with open(path, 'w', encoding='utf-8') as file:
            json.dump(data, file, ensure_ascii=False, indent=4)
        logging.info("JSON file has been successfully exported at: %s", path)
    except OSError as e:
        logging.error("JSON file couldn't be written to disk: %s", e)
        sys.exit(ExitCodes.FILE_ERROR.value)


def export_results(results, output, output_format=None):
    """Export results, the format inferred from the file extension when not given."""
    fmt = output_format
    if fmt is None:
        fmt = OutputFormats.CSV.value if output.lower().endswith(".csv") else OutputFormats.JSON.value
    if fmt == OutputFormats.CSV.value:
        export_csv(results, output)
    else:
        export_json(results, output)


def _setup_logging(args):
    """Configure logging based on CLI arguments."""
    configure_logging(getattr(args, "LOG_LEVEL", None), getattr(args, "LOG_FILE", None))
    if getattr(args, "LOG_FILE", None):
        logger.info("Logging to file: %s", args.LOG_FILE)


def create_service():
    """Create the service, checking without user ignore rules when they cannot be read.

    A malformed or unreadable ignore file in the user home directory is
    logged; the build ignore files and command line filters still apply.
    """
    try:
        user_artifact_filter = Service.create_user_artifact_filter()
    except (ArtifactFilterParseError, OSError, UnicodeDecodeError) as e:
        logger.error("Skipping the user ignore file: %s", format_error(e))
        user_artifact_filter = ACCEPT_ALL
    return Service(user_artifact_filter=user_artifact_filter)


def run(args, service=None, out=None):
    """Check the build files below ``args.path`` and print their updates.

    Args:
        args: Parsed CLI arguments
        service: Service to use, created from the configuration when None
        out: Text stream receiving the report, stdout when None

    Returns:
        tuple: (exit code, list of (build file, updates) pairs)
    """
    # pylint: disable=too-many-locals
    out = out or sys.stdout

    def emit(line=""):
        print(line, file=out)

    try:
        parse_expressions(args.FILTERS)
    except ArtifactFilterParseError as e:
        logger.error("Invalid filter: %s", e)
        return ExitCodes.FILE_ERROR.value, []

    service = service or create_service()

    try:
        build_files = service.find_build_files(args.path, args.MAX_DEPTH)
    except (FileNotFoundError, ValueError) as e:
        logger.error("%s", e)
        return ExitCodes.FILE_ERROR.value, []
    if not args.INCLUDE_OUTPUT:
        build_files = service.filter_build_files(build_files, args.path)

    if not build_files:
        emit("No build file found")
        return ExitCodes.SUCCESS.value, []
    emit(f"{len(build_files)} build file(s) found, checking for artifact updates")
    emit()

    results = []
    updates_count = 0
    for build_file in build_files:
        file_name = str(Path(build_file.file))
        try:
            build = service.find_build(build_file)
            updates = service.find_artifact_updates(
                build,
                args.FILTERS,
                args.IGNORE_SNAPSHOTS,
                args.IGNORE_INHERITED,
            )
        except (BuildResolveError, ArtifactAvailableVersionsResolveError, ArtifactFilterParseError,
                OSError, UnicodeDecodeError) as e:
            logger.debug("Unable to check %s: %s", file_name, e)
            emit(file_name)
            emit(format_error(e))
            emit()
            continue

        if updates:
            emit(file_name)
            for update in updates:
                emit(format_update(update))
            emit(f"{len(updates)} artifact update(s) available")
            emit()
        elif not args.SHORT:
            emit(file_name)
            emit("No artifact update available")
            emit()
        updates_count += len(updates)
        results.append((build_file, updates))

    emit(format_summary(len(results), len(build_files), updates_count))
    if is_debug_enabled(logger):
        logger.debug(
            "Check finished",
            extra=extra_context(
                event="function_exit",
                component="cli",
                action="run",
                outcome="updates" if updates_count else "up_to_date",
                count=updates_count,
                checked=len(results),
                total=len(build_files),
            )
        )

    if updates_count and getattr(args, "ERROR_ON_UPDATES", False):
        logger.error("Artifact updates available, exiting with non-zero status code.")
        return ExitCodes.EXIT_WARNINGS.value, results
    return ExitCodes.SUCCESS.value, results


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    _setup_logging(args)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main")
        )

    try:
        apply_config_file(load_config_file(args.CONFIG))
    except ConfigError as e:
        logger.error("%s", e)
        sys.exit(ExitCodes.FILE_ERROR.value)
    apply_cli_overrides(args)
    logging.info("Arguments parsed.")

    exit_code, results = run(args)

    if getattr(args, "OUTPUT", None):
        export_results(results, args.OUTPUT, getattr(args, "OUTPUT_FORMAT", None))

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
