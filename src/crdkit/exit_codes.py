"""Exit codes for crdkit CLI commands.

All commands use the same exit codes so scripts can tell failures apart.
"""

# Success
SUCCESS = 0

# Errors
GENERAL_ERROR = 1
INVALID_ARGS = 2
HOME_NOT_INITIALIZED = 3
PLUGIN_NOT_FOUND = 4
PLUGIN_INVALID = 5
RESOURCE_NOT_FOUND = 6
VALIDATION_FAILED = 7
STORE_ERROR = 8
