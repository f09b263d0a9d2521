"""
Per-run logging: every record of one orchestration run carries its run id.
"""

import logging
from typing import Any


class RunLogger(logging.LoggerAdapter):
    """Prefix messages with the run id. With verbose=True, debug messages are logged at INFO."""

    def __init__(self, logger: logging.Logger, run_id: str, verbose: bool = False) -> None:
        super().__init__(logger, {"run_id": run_id})
        self.verbose = verbose

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        return f"[{self.extra['run_id']}] {msg}", kwargs

    def debug(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.INFO if self.verbose else logging.DEBUG, msg, *args, **kwargs)


def get_run_logger(name: str, run_id: str, verbose: bool = False) -> RunLogger:
    return RunLogger(logging.getLogger(name), run_id, verbose)
