"""
onepass command line.

Usage:
    onepass [options]                  list all item titles
    onepass [options] TITLE            copy the item's password
    onepass [options] TITLE FIELD      copy FIELD (``totp`` for a one-time code)

Options:
    -r, --refresh           sign in again and re-fetch the index and item
    -p, --print             print the secret instead of copying it
    -f, --forget            forget the cached session (log out)
    -v, --verbose           debug logging on stderr
    --clear-after SECONDS   clear the clipboard after SECONDS (default 30)
    --reseal                re-encrypt the whole cache for the configured key
    -V, --version           show the version and exit
"""
import sys
import logging
import argparse
from pathlib import Path
from typing import Any, Callable, Optional
from collections.abc import Sequence

from .clipboard import ClearTimer, SystemClipboard
from .conf import Config, load_config
from .exceptions import NotFoundError, OnePassError
from .output import DeliveryMode, OutputSink
from .remote import OpClient
from .resolver import Resolver
from .vault import (
    CacheRepository,
    EncryptedStore,
    SessionManager,
    get_sealer,
    reseal_cache,
)
from .version import __version__

logger = logging.getLogger("onepass.cli")

TOTP_FIELD = "totp"


class OnePass:
    """Wires the components for one run from a single Config."""

    def __init__(
        self,
        config: Config,
        sealer: Any = None,
        remote: Any = None,
        clipboard: Any = None,
        spawner: Any = None,
        stream: Any = None,
    ):
        self.config = config
        self.remote = remote or OpClient(config.op_path)
        self.store = EncryptedStore(sealer or get_sealer(config), config.self_key)
        self.session = SessionManager(config, self.store, self.remote)
        self.cache = CacheRepository(config, self.store, self.session, self.remote)
        self.resolver = Resolver(self.cache, self.session, self.remote)
        self._clipboard = clipboard
        self._spawner = spawner
        self._stream = stream

    def sink(self, mode: DeliveryMode) -> OutputSink:
        if mode == DeliveryMode.PRINT:
            return OutputSink(stream=self._stream)
        clipboard = self._clipboard or SystemClipboard.detect()
        timer = ClearTimer(
            self.config.timer_state_path,
            clipboard,
            delay=self.config.clear_seconds,
            spawner=self._spawner,
        )
        return OutputSink(clipboard, timer, self._stream)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="onepass",
        description="Fetch 1Password secrets through an encrypted local cache.",
    )
    parser.add_argument("title", nargs="?", help="item title (omit to list titles)")
    parser.add_argument(
        "field", nargs="?", default="password",
        help="field to fetch: password (default), username, totp or a section label",
    )
    parser.add_argument("-r", "--refresh", action="store_true", help="sign in again and re-fetch")
    parser.add_argument("-p", "--print", action="store_true", dest="print_", help="print instead of copying")
    parser.add_argument("-f", "--forget", action="store_true", help="forget the cached session")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("--clear-after", type=_positive_int, metavar="SECONDS", help="clipboard clear delay")
    parser.add_argument("--reseal", action="store_true", help="re-encrypt the cache for the configured key")
    parser.add_argument("--config", type=Path, help="settings file (default ~/.onepass/config)")
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def run(args: argparse.Namespace, app: OnePass) -> int:
    if args.forget:
        app.session.forget()
        print("onepass: session forgotten", file=sys.stderr)
        if args.title is None:
            return 0
    if args.reseal:
        stats = reseal_cache(app.store, app.config)
        print(
            f"onepass: resealed {stats['resealed']}/{stats['total']} file(s)",
            file=sys.stderr,
        )
        return 1 if stats["errors"] else 0
    if args.refresh:
        app.session.ensure_session(force_refresh=True)

    resolver = app.resolver
    if args.title is None:
        for title in resolver.list_titles(args.refresh):
            print(title)
        return 0

    if args.field == TOTP_FIELD:
        value = resolver.resolve_totp(args.title, args.refresh)
    else:
        value = resolver.resolve_field(args.title, args.field, args.refresh)
    if not value:
        print(f"onepass: {args.title!r} has no {args.field!r} field", file=sys.stderr)
        return 0

    mode = DeliveryMode.PRINT if args.print_ else DeliveryMode.CLIPBOARD
    app.sink(mode).deliver(value, mode)
    return 0


def main(
    argv: Optional[Sequence[str]] = None,
    factory: Callable[[Config], OnePass] = OnePass,
) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(name)s] %(levelname)-8s %(message)s",
        datefmt="%H:%M:%S",
    )
    try:
        config = load_config(args.config)
        if args.clear_after:
            config = config.model_copy(update={"clear_seconds": args.clear_after})
        return run(args, factory(config))
    except NotFoundError as err:
        print(f"onepass: {err}", file=sys.stderr)
        return 1
    except OnePassError as err:
        logger.debug("Aborting", exc_info=True)
        print(f"onepass: {err}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
