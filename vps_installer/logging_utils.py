from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

DEFAULT_LOG_PATH = "/var/log/vps-installer.log"

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

_RESET = "\x1b[0m"
_FAINT = "\x1b[2m"

# level -> (tag, 24-bit foreground)
_TAGS = {
    logging.DEBUG: ("[DEBUG]", "\x1b[38;2;128;128;128m"),
    logging.INFO: ("[INFO]", "\x1b[38;2;0;135;215m"),
    SUCCESS: ("[SUCCESS]", "\x1b[38;2;0;175;0m"),
    logging.WARNING: ("[WARN]", "\x1b[38;2;215;215;95m"),
    logging.ERROR: ("[ERROR]", "\x1b[38;2;215;0;0m"),
    logging.CRITICAL: ("[ERROR]", "\x1b[38;2;215;0;0m"),
}


class ConsoleFormatter(logging.Formatter):
    """Render records as `[TAG] message`, colored when writing to a terminal."""

    def __init__(self, *, color: bool = True) -> None:
        super().__init__(fmt="%(message)s")
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        tag, fg = _TAGS.get(record.levelno, (f"[{record.levelname}]", ""))
        if not self.color:
            return f"{tag} {message}"
        return f"{fg}{tag}{_RESET} {_FAINT}{message}{_RESET}"


def _stream_is_tty(stream) -> bool:
    isatty = getattr(stream, "isatty", None)
    try:
        return bool(isatty and isatty())
    except ValueError:
        # closed stream
        return False


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Configure logging.

    Every decision is recorded to the log file; the console gets the short
    tagged form.

    Notes:
    - Writing to /var/log may not be permitted for non-root dry runs.
      We still *attempt* to write there first; if it fails, we fall back to
      a local file in the working directory, while continuing to *report*
      the intended path.

    Returns the actual file path being used.
    """

    logger = logging.getLogger()
    logger.setLevel(level)

    # Avoid duplicate handlers if configure_logging() is called multiple times.
    if getattr(logger, "_vps_installer_configured", False):
        return getattr(logger, "_vps_installer_log_path", log_path)

    chosen_path = log_path
    handlers: list[logging.Handler] = []

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    file_handler: Optional[logging.Handler] = None
    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
    except OSError:
        fallback = str(Path.cwd() / "vps-installer.log")
        file_handler = logging.FileHandler(fallback)
        chosen_path = fallback
    file_handler.setFormatter(fmt)
    handlers.append(file_handler)

    if also_console:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(ConsoleFormatter(color=_stream_is_tty(sys.stderr)))
        handlers.append(console)

    for h in handlers:
        logger.addHandler(h)

    setattr(logger, "_vps_installer_configured", True)
    setattr(logger, "_vps_installer_log_path", chosen_path)

    logging.getLogger(__name__).debug(
        "Logging initialized (requested=%s, actual=%s)", log_path, chosen_path
    )
    return chosen_path
