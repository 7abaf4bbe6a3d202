from __future__ import annotations
import logging
import functools
from typing import Type, Callable, Any, Optional

class S3MigrateError(Exception): pass
class ConfigError(S3MigrateError): pass

class MigrationError(S3MigrateError):
    """Fatal error that stops the run; `phase` names the step that failed."""
    phase = "migration"

    def __init__(self, message: str, phase: Optional[str] = None):
        super().__init__(message)
        if phase:
            self.phase = phase

class StagingSetupError(MigrationError): phase = "staging"
class StagingTeardownError(MigrationError): phase = "cleanup"
class ListingFailed(MigrationError): phase = "download"
class UploadFailed(MigrationError): phase = "upload"

class ObjectDownloadError(S3MigrateError):
    """Per-key download failure. Recovered by the downloader under the continue policy."""
    def __init__(self, key: str, cause: BaseException):
        super().__init__(f"{key}: {cause}")
        self.key = key
        self.cause = cause

def setup_logging(level: int = logging.INFO, logfile: str | None = None) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):  # avoid duplicate handlers
        root.removeHandler(h)
    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    stream = logging.StreamHandler()
    stream.setFormatter(fmt)
    root.addHandler(stream)
    if logfile:
        fh = logging.FileHandler(logfile)
        fh.setFormatter(fmt)
        root.addHandler(fh)
    # botocore is chatty at DEBUG
    logging.getLogger("botocore").setLevel(max(level, logging.INFO))

def log_and_reraise(exception_cls: Type[Exception] = S3MigrateError):
    def deco(func: Callable[..., Any]):
        @functools.wraps(func)
        def wrapper(*a, **kw):
            try:
                return func(*a, **kw)
            except exception_cls:
                raise
            except Exception as e:
                logging.getLogger(func.__module__).error("%s failed: %s", func.__name__, e)
                raise exception_cls(f"{func.__name__} failed: {e}") from e
        return wrapper
    return deco
