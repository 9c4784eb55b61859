from typing import List, Tuple


class L10nError(Exception):
    """Base class for errors raised by the localized string cache."""


class DocumentNotFoundError(L10nError, FileNotFoundError):
    def __init__(self, path: str):
        super().__init__(f"File not found: {path}")
        self.path = path


class DocumentParseError(L10nError, ValueError):
    """The file exists but is empty or not well-formed XLIFF."""

    def __init__(self, path: str, reason: str = ""):
        message = f"Cannot parse {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.path = path
        self.reason = reason


class DocumentPermissionError(L10nError, PermissionError):
    def __init__(self, path: str, reason: str = ""):
        super().__init__(f"Access denied for {path}" + (f": {reason}" if reason else ""))
        self.path = path


class DocumentSaveError(L10nError, OSError):
    """
    Raised after a save pass in which one or more files could not be written.
    Every failed file is listed; the pass is never aborted on the first failure.
    """

    def __init__(self, failures: List[Tuple[str, Exception]]):
        self.failures = list(failures)
        lines = ["Failed to save localization changes in the following files:"]
        for path, exc in self.failures:
            lines.append("")
            lines.append(f"File: {path}")
            lines.append(f"Error Type: {type(exc).__name__}")
            lines.append(f"Message: {exc}")
        super().__init__("\n".join(lines))

    @property
    def failed_paths(self) -> List[str]:
        return [path for path, _ in self.failures]
