"""Documented exit codes for the NetSmog coordinator and worker.

Exit codes follow UNIX conventions:
- 0: Success
- 1: General/unspecified error
- 2: Invalid command-line arguments or usage
- 3-6: Application-specific startup failures

Usage:
    from netsmog.util.exit_codes import ExitCode
    sys.exit(ExitCode.SECRETS_UNREADABLE)
"""

from __future__ import annotations


class ExitCode:
    """Exit code constants for NetSmog processes.

    Attributes:
        SUCCESS: Normal termination, no errors.
        GENERAL_ERROR: Unspecified runtime error.
        INVALID_ARGS: Command-line argument validation failed.
        CONFIG_ERROR: Coordinator config file missing or invalid.
        SECRETS_UNREADABLE: Secret store or worker secret file cannot be read.
        ASSIGNMENT_FAILED: Worker could not fetch its target assignment.
        STORAGE_ERROR: Sample database could not be opened.
    """

    SUCCESS: int = 0
    GENERAL_ERROR: int = 1
    INVALID_ARGS: int = 2
    CONFIG_ERROR: int = 3
    SECRETS_UNREADABLE: int = 4
    ASSIGNMENT_FAILED: int = 5
    STORAGE_ERROR: int = 6

    @classmethod
    def message(cls, code: int) -> str:
        """Return a human-readable message for an exit code."""
        messages = {
            cls.SUCCESS: "Success",
            cls.GENERAL_ERROR: "General error",
            cls.INVALID_ARGS: "Invalid arguments",
            cls.CONFIG_ERROR: "Configuration error",
            cls.SECRETS_UNREADABLE: "Secret store unreadable",
            cls.ASSIGNMENT_FAILED: "Could not fetch assignment",
            cls.STORAGE_ERROR: "Storage error",
        }
        return messages.get(code, f"Unknown exit code {code}")
