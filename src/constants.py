"""Constants used in the project."""

from enum import Enum


class LockStrategies(Enum):
    """Lock strategies shipped with the cache.

    Args:
        Enum (string): Registry names of the lock strategies.
    """

    NO_LOCK = "no-lock"
    IN_PROCESS = "in-process"
    ARTIFACT_LOCK = "artifact-lock"


class LatestStrategies(Enum):
    """Latest strategies shipped with the resolvers.

    Args:
        Enum (string): Registry names of the latest strategies.
    """

    REVISION = "latest-revision"
    LEXICO = "latest-lexico"
    TIME = "latest-time"
    SEMVER = "latest-semver"


class Matchers(Enum):
    """Pattern matcher names.

    Args:
        Enum (string): Registry names of the pattern matchers.
    """

    EXACT = "exact"
    REGEXP = "regexp"
    GLOB = "glob"
    EXACT_OR_REGEXP = "exactOrRegexp"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    DEFAULT_CACHE_DIR = "~/.depcache/cache"
    ENV_CACHE_DIR = "DEPCACHE_CACHE_DIR"
    ENV_LOG_LEVEL = "DEPCACHE_LOG_LEVEL"
    LOG_FORMAT = "[%(levelname)s] %(message)s"

    # Cache layout patterns, relative to the repository / resolution roots
    CACHE_DESCRIPTOR_PATTERN = "[organisation]/[module]/descriptor-[revision].yaml"
    CACHE_ARTIFACT_PATTERN = "[organisation]/[module]/[type]s/[artifact]-[revision](.[ext])"
    CACHE_DATA_FILE_PATTERN = "[organisation]/[module]/cachedata-[revision].properties"
    CACHE_RESOLVED_DESCRIPTOR_PATTERN = "resolved-[organisation]-[module]-[revision].yaml"
    CACHE_RESOLVED_PROPERTIES_PATTERN = "resolved-[organisation]-[module]-[revision].properties"

    DESCRIPTOR_ARTIFACT_NAME = "descriptor"
    DESCRIPTOR_ARTIFACT_TYPE = "descriptor"
    DESCRIPTOR_ARTIFACT_EXT = "yaml"

    # Metadata keys in the cached data file
    RESOLVER_KEY = "resolver"
    ARTIFACT_RESOLVER_KEY = "artifact.resolver"

    DEFAULT_LOCK_STRATEGY = LockStrategies.ARTIFACT_LOCK.value
    DEFAULT_LATEST_STRATEGY = LatestStrategies.REVISION.value
    DEFAULT_CHANGING_MATCHER = Matchers.EXACT_OR_REGEXP.value
    DEFAULT_LATEST_NAME = "default"
    SYSTEM_NAMESPACE = "system"
    LOCK_FILE_SUFFIX = ".lck"
    LOCK_TIMEOUT_SEC = 120
    LOCK_POLL_INTERVAL_SEC = 0.1
    DEFAULT_STATUS = "integration"
