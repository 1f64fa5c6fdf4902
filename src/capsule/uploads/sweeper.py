"""Retention sweep for the upload directory.

Deletes uploads that were never consumed once they are older than the
retention window. Intended to be run periodically from outside the
server process, e.g. from cron::

    0 2 * * * cd /srv/capsule && capsule purge
"""

from __future__ import annotations

import asyncio
import logging
import stat
import time
from pathlib import Path

from capsule.domain.models import SweepReport

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600.0


def sweep_directory(
    directory: Path | str,
    max_age_hours: float,
    now: float | None = None,
) -> SweepReport:
    """Delete every file in ``directory`` older than ``max_age_hours``.

    Age is measured from the file's last-modified time. Each entry is
    handled on its own: a stat or unlink failure is logged and recorded
    in the report, and the sweep carries on with the next entry.

    Args:
        directory: The upload directory to scan.
        max_age_hours: Retention window. Files strictly older are deleted.
        now: Reference time (epoch seconds). Defaults to the current time.
    """
    directory = Path(directory)
    report = SweepReport(directory=directory)
    if now is None:
        now = time.time()
    max_age_seconds = max_age_hours * SECONDS_PER_HOUR

    try:
        entries = sorted(directory.iterdir())
    except FileNotFoundError:
        logger.warning("Upload directory %s does not exist, nothing to sweep", directory)
        return report
    except OSError as e:
        logger.error("Error reading uploads directory %s: %s", directory, e)
        return report

    for entry in entries:
        report.scanned += 1
        try:
            st = entry.stat()
        except FileNotFoundError:
            # Released by a request between listing and stat
            continue
        except OSError as e:
            logger.error("Failed to stat %s: %s", entry, e)
            report.failed.append(entry.name)
            continue

        if not stat.S_ISREG(st.st_mode):
            logger.debug("Skipping non-file entry %s", entry)
            continue

        age_seconds = now - st.st_mtime
        if age_seconds <= max_age_seconds:
            continue

        try:
            entry.unlink()
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.error("Failed to delete %s: %s", entry, e)
            report.failed.append(entry.name)
            continue

        report.deleted.append(entry.name)
        logger.info("Deleted old file %s (age %.1fh)", entry, age_seconds / SECONDS_PER_HOUR)

    logger.info(
        "Sweep of %s complete: %d scanned, %d deleted, %d failed",
        directory, report.scanned, len(report.deleted), len(report.failed),
    )
    return report


class PurgeSweeper:
    """Runs ``sweep_directory`` off the event loop for a fixed directory."""

    def __init__(self, directory: Path | str, max_age_hours: float = 24.0) -> None:
        if max_age_hours <= 0:
            raise ValueError("max_age_hours must be positive")
        self._directory = Path(directory)
        self._max_age_hours = max_age_hours

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def max_age_hours(self) -> float:
        return self._max_age_hours

    async def run(self, now: float | None = None) -> SweepReport:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, sweep_directory, self._directory, self._max_age_hours, now
        )
