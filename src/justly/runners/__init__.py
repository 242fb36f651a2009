"""Process runner interfaces and implementations."""

from .base import ProcessRunner
from .local import SubprocessRunner
from .recording import RecordingRunner

__all__ = [
    "ProcessRunner",
    "RecordingRunner",
    "SubprocessRunner",
]
