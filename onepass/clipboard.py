"""
Clipboard access and race-safe automatic clearing.

Clearing is driven by a persisted *generation* counter named after the
invoking user (``onepass-clear-<user>``). Arming a timer bumps the
generation under an exclusive lock; a waiter only overwrites the clipboard
if its generation is still the current one when it wakes, so only the most
recently armed timer ever clears. The previous detached waiter is also
terminated when it can be positively identified.

The detached waiter is this module run as a script::

    python -m onepass.clipboard --name N --state PATH --generation G --delay S
"""
import os
import sys
import time
import fcntl
import shutil
import signal
import getpass
import logging
import argparse
import threading
import subprocess
from contextlib import contextmanager
from pathlib import Path
from collections.abc import Iterator, Sequence
from typing import IO, Any, Callable, Optional

import orjson

from .exceptions import ClipboardError

logger = logging.getLogger("onepass.clipboard")

CLEARED_SENTINEL = "onepass: clipboard cleared"

CLIPBOARD_COMMANDS = (
    ("pbcopy",),
    ("wl-copy",),
    ("xclip", "-selection", "clipboard"),
    ("xsel", "--clipboard", "--input"),
)


def timer_name(user: Optional[str] = None) -> str:
    return f"onepass-clear-{user or getpass.getuser()}"


class SystemClipboard:
    """Clipboard written through a platform copy command."""

    def __init__(self, command: Sequence[str]):
        self.command = list(command)

    @classmethod
    def detect(cls) -> "SystemClipboard":
        for command in CLIPBOARD_COMMANDS:
            if shutil.which(command[0]):
                return cls(command)
        raise ClipboardError(
            "no clipboard command found; install one of: "
            + ", ".join(c[0] for c in CLIPBOARD_COMMANDS)
        )

    def set(self, text: str) -> None:
        # xclip and wl-copy fork to serve the selection: never capture output
        try:
            subprocess.run(
                self.command,
                input=text,
                text=True,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=True,
            )
        except (OSError, subprocess.CalledProcessError) as err:
            raise ClipboardError(f"{self.command[0]} failed: {err}") from err


# ---------------------------------------------------------------------------
# Spawners
# ---------------------------------------------------------------------------

class ThreadSpawner:
    """Runs the waiter on a background thread nobody joins."""

    def __init__(self) -> None:
        self.threads: list[threading.Thread] = []

    def __call__(self, timer: "ClearTimer", generation: int) -> Optional[int]:
        thread = threading.Thread(
            target=timer.wait_and_clear,
            args=(generation,),
            name=f"{timer.name}-{generation}",
        )
        thread.start()
        self.threads.append(thread)
        return None


class DetachedSpawner:
    """Runs the waiter as a detached process that outlives the caller."""

    def __call__(self, timer: "ClearTimer", generation: int) -> Optional[int]:
        proc = subprocess.Popen(
            [
                sys.executable, "-m", "onepass.clipboard",
                "--name", timer.name,
                "--state", str(timer.state_path),
                "--generation", str(generation),
                "--delay", str(timer.delay),
            ],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
            close_fds=True,
        )
        # never waited on; the child outlives us
        proc.returncode = 0
        return proc.pid


def _terminate(pid: int, name: str) -> bool:
    """SIGTERM ``pid`` if its command line carries our timer name."""
    if pid == os.getpid():
        return False
    try:
        args = Path(f"/proc/{pid}/cmdline").read_bytes().split(b"\0")
    except OSError:
        return False
    if name.encode() not in args:
        return False
    try:
        os.kill(pid, signal.SIGTERM)
    except (ProcessLookupError, PermissionError):
        return False
    return True


# ---------------------------------------------------------------------------
# Timer
# ---------------------------------------------------------------------------

class ClearTimer:
    """Arms clipboard clears; the latest one armed wins."""

    def __init__(
        self,
        state_path: Path,
        clipboard: Any,
        delay: float = 30,
        spawner: Optional[Callable[["ClearTimer", int], Optional[int]]] = None,
        name: Optional[str] = None,
    ):
        self.state_path = state_path
        self.clipboard = clipboard
        self.delay = delay
        self.spawner = spawner or DetachedSpawner()
        self.name = name or timer_name()

    @contextmanager
    def _locked(self) -> Iterator[IO[bytes]]:
        self.state_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        fd = os.open(self.state_path, os.O_RDWR | os.O_CREAT, 0o600)
        with os.fdopen(fd, "r+b") as fp:
            fcntl.flock(fp, fcntl.LOCK_EX)
            try:
                yield fp
            finally:
                fcntl.flock(fp, fcntl.LOCK_UN)

    @staticmethod
    def _load(fp: IO[bytes]) -> dict[str, Any]:
        fp.seek(0)
        raw = fp.read()
        if not raw:
            return {}
        try:
            state = orjson.loads(raw)
        except orjson.JSONDecodeError:
            logger.warning("Clear-timer state corrupt, starting over")
            return {}
        return state if isinstance(state, dict) else {}

    @staticmethod
    def _save(fp: IO[bytes], state: dict[str, Any]) -> None:
        fp.seek(0)
        fp.truncate()
        fp.write(orjson.dumps(state))
        fp.flush()

    def current_generation(self) -> int:
        with self._locked() as fp:
            return int(self._load(fp).get("generation", 0))

    def arm(self) -> int:
        """Cancel any earlier clear and schedule a new one.

        Returns:
            The generation of the newly armed clear.
        """
        with self._locked() as fp:
            state = self._load(fp)
            pid = state.get("pid")
            if isinstance(pid, int) and state.get("name") == self.name:
                if _terminate(pid, self.name):
                    logger.debug("Terminated previous clear timer pid=%d", pid)
            generation = int(state.get("generation", 0)) + 1
            # publish the generation before the waiter can read it
            self._save(fp, {"name": self.name, "generation": generation, "pid": None})
            pid = self.spawner(self, generation)
            self._save(fp, {"name": self.name, "generation": generation, "pid": pid})
        logger.debug("Clipboard clear armed: generation=%d delay=%ss", generation, self.delay)
        return generation

    def clear_if_current(self, generation: int) -> bool:
        """Overwrite the clipboard unless a newer clear has been armed."""
        with self._locked() as fp:
            current = int(self._load(fp).get("generation", 0))
            if current != generation:
                logger.debug("Clear generation %d superseded by %d", generation, current)
                return False
            self.clipboard.set(CLEARED_SENTINEL)
        logger.debug("Clipboard cleared (generation %d)", generation)
        return True

    def wait_and_clear(self, generation: int) -> bool:
        time.sleep(self.delay)
        return self.clear_if_current(generation)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Detached waiter entry point."""
    parser = argparse.ArgumentParser(prog="onepass.clipboard")
    parser.add_argument("--name", required=True)
    parser.add_argument("--state", required=True, type=Path)
    parser.add_argument("--generation", required=True, type=int)
    parser.add_argument("--delay", required=True, type=float)
    args = parser.parse_args(argv)

    try:
        timer = ClearTimer(
            args.state, SystemClipboard.detect(), args.delay, name=args.name,
        )
        timer.wait_and_clear(args.generation)
    except ClipboardError as err:
        print(f"onepass: {err}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
