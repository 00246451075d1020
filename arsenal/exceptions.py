"""Exceptions raised by the skill linking engine."""

from pathlib import Path
from typing import Union


class ArsenalError(Exception):
    """Base class for all arsenal errors."""


class ContentRootNotFoundError(ArsenalError):
    """The external content root (e.g. `.context/`) does not exist."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        super().__init__(f"Content root not found: {self.path}")


class RuleFileError(ArsenalError):
    """The skill-rules.json file exists but cannot be used."""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Invalid JSON in {self.path}: {reason}")
