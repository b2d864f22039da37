"""Summary artifacts on disk and the idempotency filter built on them.

A paper is finished once <summary_dir>/<canonical_key>-summary.md exists.
The directory listing is therefore the only state carried between runs:

    - existing_summary_keys() reads the listing (no network, no parsing)
    - plan_work() drops finished papers and duplicate keys from the work list
    - atomic_open() and write_atomic() guarantee a file is either absent or
      complete

Writes go to a hidden temporary sibling and are renamed into place, so a
crash mid-write never leaves a half-written summary or PDF behind.
"""

import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator

from models.outcomes import ProcessingOutcome, ProcessingStatus
from models.paper import Paper, SUMMARY_SUFFIX

logger = logging.getLogger(__name__)


def existing_summary_keys(summary_dir: Path) -> set[str]:
    """Return the canonical keys that already have a finished summary.

    Args:
        summary_dir: Artifact directory

    Returns:
        Set of canonical keys (empty if the directory does not exist)
    """
    if not summary_dir.is_dir():
        return set()
    return {
        entry.name[: -len(SUMMARY_SUFFIX)]
        for entry in summary_dir.iterdir()
        if entry.name.endswith(SUMMARY_SUFFIX) and entry.is_file()
    }


def plan_work(
    papers: list[Paper],
    completed_keys: set[str],
) -> tuple[list[Paper], list[ProcessingOutcome]]:
    """Split discovered papers into work and skipped outcomes.

    Papers whose key is already complete are skipped. When two papers share
    a key, the first one is kept and the later ones are skipped so they
    cannot overwrite its files.

    Args:
        papers: Discovered papers in feed order
        completed_keys: Keys returned by existing_summary_keys()

    Returns:
        Tuple of (papers to process in order, skipped outcomes)
    """
    to_process: list[Paper] = []
    skipped: list[ProcessingOutcome] = []
    claimed: set[str] = set()

    for paper in papers:
        key = paper.canonical_key
        if key in completed_keys:
            skipped.append(ProcessingOutcome(paper, ProcessingStatus.SKIPPED, "summary exists"))
        elif key in claimed:
            logger.warning("Duplicate key skipped | id=%s key=%s", paper.paper_id, key[:60])
            skipped.append(ProcessingOutcome(paper, ProcessingStatus.SKIPPED, "duplicate key"))
        else:
            claimed.add(key)
            to_process.append(paper)

    return to_process, skipped


@contextmanager
def atomic_open(path: Path) -> Iterator[BinaryIO]:
    """Open a binary file that only appears at path once the block succeeds.

    The file is written under a hidden temporary name in the same directory
    and renamed into place on exit. If the block raises, the temporary file
    is removed and path is left untouched.

    Raises:
        OSError: If the temporary file cannot be created, written or renamed
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name[:50]}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            yield f
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def write_atomic(path: Path, data: bytes | str) -> None:
    """Write a file so readers only ever see it absent or complete.

    Args:
        path: Destination file
        data: Content (str is encoded as UTF-8)
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    with atomic_open(path) as f:
        f.write(data)


def save_summary(paper: Paper, document: str, summary_dir: Path) -> Path:
    """Persist a finished summary for a paper.

    Returns:
        Path of the written summary
    """
    path = summary_dir / paper.summary_filename
    write_atomic(path, document)
    logger.info("Summary saved | file=%s", path.name)
    return path
