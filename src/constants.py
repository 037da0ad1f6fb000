"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    EXIT_WARNINGS = 3


class OutputFormats(Enum):
    """Export formats supported by the program.

    Args:
        Enum (string): Export formats supported by the program.
    """

    JSON = "json"
    CSV = "csv"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    PROGRAM_NAME = "buildcheck"
    PROGRAM_VERSION = "1.0.0"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    ENV_LOG_LEVEL = "BUILDCHECK_LOG_LEVEL"

    # Ignore files, looked up in the user home and beside each build file
    IGNORE_FILE_NAME = ".buildcheck-ignore"

    # Build file discovery
    DEFAULT_MAX_DEPTH = None
    OUTPUT_DIRECTORY_NAMES = ["target", "build"]

    # Gradle
    ENV_GRADLE_HOME = "GRADLE_HOME"
    GRADLE_COMMAND = None
    GRADLE_TIMEOUT_SEC = 600

    # Maven repositories
    MAVEN_CENTRAL_ID = "central"
    MAVEN_CENTRAL_URL = "https://repo.maven.apache.org/maven2"
    MAVEN_METADATA_FILE = "maven-metadata.xml"

    # Maven settings, None means ~/.m2/settings.xml and the settings of the
    # Maven installation found through MAVEN_HOME, M2_HOME or the PATH
    MAVEN_SETTINGS_FILE = None
    MAVEN_GLOBAL_SETTINGS_FILE = None
    ENV_MAVEN_HOME = ["MAVEN_HOME", "M2_HOME"]

    # HTTP
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    HTTP_CACHE_TTL_SEC = 300

    # Worker pool used for available versions lookups, None means cpu count
    MAX_WORKERS = None
