"""Progress reporting for a harvest run.

The harvester never prints; it calls a :class:`ProgressListener` at fixed
points (after each listing page, each batch, each level) and once at the
end with the run's outcome.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn, TimeElapsedColumn

if TYPE_CHECKING:
    from .harvester import ArchiveStats

logger = logging.getLogger("treasurehole.progress")


class ProgressListener:
    """No-op base; override the hooks you care about."""

    def bookmarks_page(self, page: int, total: int) -> None:
        pass

    def level_started(self, level: int, count: int) -> None:
        pass

    def batch_fetched(self, level: int, done: int, total: int, first_pid: int) -> None:
        pass

    def images_saved(self, done: int, total: int) -> None:
        pass

    def level_finished(self, level: int, emitted: int, references: int) -> None:
        pass

    def finished(self, stats: ArchiveStats) -> None:
        pass

    def failed(self, error: BaseException) -> None:
        pass


class LoggingProgressListener(ProgressListener):
    """Reports every event as a log line."""

    def bookmarks_page(self, page: int, total: int) -> None:
        logger.info("Bookmark list page %d (%d posts so far)", page, total)

    def level_started(self, level: int, count: int) -> None:
        if level == 0:
            logger.info("Fetching %d bookmarked posts", count)
        else:
            logger.info("=== Following references, level %d (%d posts) ===", level, count)

    def batch_fetched(self, level: int, done: int, total: int, first_pid: int) -> None:
        logger.info("Posts %d/%d (from #%d)", done, total, first_pid)

    def images_saved(self, done: int, total: int) -> None:
        logger.info("Images %d/%d", done, total)

    def level_finished(self, level: int, emitted: int, references: int) -> None:
        logger.info("Level %d done: %d posts saved, %d references found", level, emitted, references)

    def finished(self, stats: ArchiveStats) -> None:
        logger.info("Done: %d posts, %d images", stats.posts, stats.images)

    def failed(self, error: BaseException) -> None:
        logger.error("Backup failed: %s", error)


class RichProgressListener(LoggingProgressListener):
    """Log lines plus a live progress bar per level."""

    def __init__(self, console: Console | None = None) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            TimeElapsedColumn(),
            console=console,
        )
        self._posts: TaskID | None = None
        self._images: TaskID | None = None

    def __enter__(self) -> RichProgressListener:
        self.progress.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.progress.stop()

    def level_started(self, level: int, count: int) -> None:
        super().level_started(level, count)
        label = "bookmarks" if level == 0 else f"references L{level}"
        self._posts = self.progress.add_task(f"Posts ({label})", total=count)
        self._images = None

    def batch_fetched(self, level: int, done: int, total: int, first_pid: int) -> None:
        logger.debug("Posts %d/%d (from #%d)", done, total, first_pid)
        if self._posts is not None:
            self.progress.update(self._posts, completed=done)

    def images_saved(self, done: int, total: int) -> None:
        logger.debug("Images %d/%d", done, total)
        if self._images is None:
            self._images = self.progress.add_task("Images", total=total)
        self.progress.update(self._images, completed=done)
