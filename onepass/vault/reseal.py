"""
Reseal — re-encrypt every sealed file for the configured recipient.

Used after changing ``self_key`` (or adding a newer keyfile version): each
artifact is unsealed with whatever key it was sealed to and sealed again to
the current recipient. Per-file failures are logged and counted; the rest
of the cache is still processed, so the operation can simply be re-run.

Security Note:
    Plaintext exists in memory only while one file is re-sealed.
    Never log plaintext or ciphertext values.
"""
import os
import logging
from pathlib import Path

from .store import EncryptedStore
from ..conf import Config
from ..exceptions import StoreError

logger = logging.getLogger("onepass.vault")


def sealed_files(config: Config) -> list[Path]:
    """Every sealed artifact that currently exists."""
    candidates = [
        config.master_secret_path,
        config.secret_key_path,
        config.session_path,
        config.index_path,
        config.index_backup_path,
    ]
    if config.items_dir.is_dir():
        candidates.extend(sorted(config.items_dir.glob("*.sealed")))
    return [p for p in candidates if p.is_file()]


def reseal_cache(store: EncryptedStore, config: Config) -> dict:
    """Re-seal all artifacts to ``store.recipient``.

    Returns:
        Stats dict with keys: total, resealed, errors.
    """
    stats = {"total": 0, "resealed": 0, "errors": 0}
    logger.info("Resealing cache under %s for %s", config.home, store.recipient)

    for path in sealed_files(config):
        stats["total"] += 1
        try:
            # session staleness is judged by mtime, keep it
            stat = path.stat()
            plaintext = store.read(path)
            store.write(path, plaintext)
            os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns))
            stats["resealed"] += 1
        except (OSError, StoreError) as err:
            logger.error("Error resealing %s: %s", path, err)
            stats["errors"] += 1

    logger.info("Reseal complete: %s", stats)
    return stats
