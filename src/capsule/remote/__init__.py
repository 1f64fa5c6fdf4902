"""Remote command execution for capsule."""

from capsule.remote.executor import (
    CommandExecutionError,
    CommandExecutor,
    CommandNotAllowedError,
)

__all__ = ["CommandExecutionError", "CommandExecutor", "CommandNotAllowedError"]
