"""Route liltodo's loguru records to the terminal and an optional log file.

Only records emitted from ``liltodo.*`` modules reach these sinks, so a
library that also logs through loguru does not leak into the CLI output.
"""

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = "<level>liltodo {level.name}:</level> {message}"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <7} | {name}:{function} | {message}"


def setup_logging(level: str = "WARNING", log_file: str | Path | None = None) -> None:
    """Replace any existing sinks with liltodo's stderr sink.

    Warnings (skipped or degraded records during reindex) show by default;
    ``--verbose`` lowers ``level`` to DEBUG. When ``log_file`` is set, the same
    records are appended there with timestamps and the emitting module.
    """
    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, filter="liltodo")

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(path, level=level, format=FILE_FORMAT, filter="liltodo", rotation="1 MB", retention=3)
