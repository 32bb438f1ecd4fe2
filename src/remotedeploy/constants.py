"""Constants shared across remotedeploy."""

from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    UNEXPECTED = 1
    INVALID_INPUT = 2
    ACQUISITION = 3
    BUILD_CONTEXT = 4
    CONNECTIVITY = 5
    PROVISIONING = 6
    TRANSFER = 7
    DEPLOY = 8
    PROXY_CONFIG = 9
    CLEANUP = 10
    INTERRUPTED = 130


DEFAULT_BRANCH = "main"
DEFAULT_APPLICATION_NAME = "app"
DEFAULT_EXPOSED_PORT = 80
SSH_PORT = 22

PROXY_SITES_AVAILABLE = "/etc/nginx/sites-available"
PROXY_SITES_ENABLED = "/etc/nginx/sites-enabled"

MASK = "***"
LOG_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
