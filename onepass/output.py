"""Output Sink — hands a resolved secret to stdout or the clipboard."""
import sys
import logging
from enum import Enum
from typing import IO, Any, Optional

from .clipboard import ClearTimer

logger = logging.getLogger("onepass.clipboard")


class DeliveryMode(str, Enum):
    PRINT = "print"
    CLIPBOARD = "clipboard"


class OutputSink:
    def __init__(
        self,
        clipboard: Any = None,
        timer: Optional[ClearTimer] = None,
        stream: Optional[IO[str]] = None,
    ):
        self.clipboard = clipboard
        self.timer = timer
        self.stream = stream

    def deliver(self, value: str, mode: DeliveryMode = DeliveryMode.CLIPBOARD) -> None:
        """Print ``value`` verbatim, or copy it and arm the clipboard clear."""
        if mode == DeliveryMode.PRINT:
            stream = self.stream or sys.stdout
            stream.write(value)
            stream.flush()
            return
        self.clipboard.set(value)
        if self.timer is not None:
            self.timer.arm()
        logger.debug("Secret copied to clipboard")
