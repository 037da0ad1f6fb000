"""Argument parsing functionality for buildcheck."""

import argparse
from constants import Constants


def _max_depth(value):
    depth = int(value)
    if depth < 0:
        raise argparse.ArgumentTypeError(f"invalid max depth: {value} (expected >= 0)")
    return depth


def _workers(value):
    workers = int(value)
    if workers < 1:
        raise argparse.ArgumentTypeError(f"invalid workers: {value} (expected >= 1)")
    return workers


def build_parser():
    """Build the argument parser of the program."""
    parser = argparse.ArgumentParser(
        prog=Constants.PROGRAM_NAME,
        description=(
            "buildcheck - Check Maven and Gradle builds for artifact updates"
        ),
        add_help=True,
    )

    parser.add_argument("path",
                        help="Build file or directory to search for build files (default: current directory)",
                        nargs="?",
                        default=".")
    parser.add_argument("-d", "--max-depth",
                        dest="MAX_DEPTH",
                        help="Maximum directory depth to search for build files",
                        action="store",
                        type=_max_depth,
                        default=Constants.DEFAULT_MAX_DEPTH)
    parser.add_argument("-f", "--filter",
                        dest="FILTERS",
                        help="Only check artifacts matching GROUP[:ARTIFACT[:VERSION]] (wildcards ? and *, repeatable)",
                        action="append",
                        type=str,
                        default=[])
    parser.add_argument("-i", "--ignore-snapshots",
                        dest="IGNORE_SNAPSHOTS",
                        help="Ignore artifacts with a snapshot version",
                        action="store_true")
    parser.add_argument("--ignore-inherited",
                        dest="IGNORE_INHERITED",
                        help="Ignore artifacts with an inherited version",
                        action="store_true")
    parser.add_argument("-o", "--include-output",
                        dest="INCLUDE_OUTPUT",
                        help="Include build files found in build output directories",
                        action="store_true")
    parser.add_argument("-s", "--short",
                        dest="SHORT",
                        help="Only print build files having artifact updates",
                        action="store_true")
    parser.add_argument("-v", "--version",
                        action="version",
                        version=f"%(prog)s {Constants.PROGRAM_VERSION}")

    # Config file (general)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML, YML, or JSON)",
                        action="store",
                        type=str)

    parser.add_argument("--output",
                        dest="OUTPUT",
                        help="Path to output file (JSON or CSV)",
                        action="store",
                        type=str)
    parser.add_argument("--format",
                        dest="OUTPUT_FORMAT",
                        help="Output format (json or csv). If not specified, inferred from --output extension; defaults to json.",
                        action="store",
                        type=str.lower,
                        choices=['json', 'csv'])
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("--workers",
                        dest="WORKERS",
                        help="Number of concurrent available versions lookups",
                        action="store",
                        type=_workers)
    parser.add_argument("--error-on-updates",
                        dest="ERROR_ON_UPDATES",
                        help="Exit with a non-zero status code if artifact updates are available.",
                        action="store_true")
    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
