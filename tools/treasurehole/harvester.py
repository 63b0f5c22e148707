"""Core harvesting logic – orchestrates API → Storage.

A run walks the bookmark list, fetches each bookmarked post, then follows
``#<pid>`` references breadth-first for ``ref_levels`` levels.  Records are
flushed to ``data.js`` batch by batch, so a failed run leaves a truncated
but readable archive.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Iterator, Sequence, TypeVar

from .api import HoleAPI
from .config import ArchiveConfig
from .progress import LoggingProgressListener, ProgressListener
from .schema import MAX_POST_ID, Shape, check_envelope, expect, expect_field, expect_post_id
from .storage import ArchiveStorage, image_filename

logger = logging.getLogger("treasurehole.core")

POST_REF_RE = re.compile(r"#(\d+)")
MAX_POST_ID_DIGITS = len(str(MAX_POST_ID))

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def unique(items: Sequence[T]) -> list[T]:
    """Drop repeats, keeping first-seen order."""
    return list(dict.fromkeys(items))


def extract_references(text: str) -> list[int]:
    """Every ``#<digits>`` in *text* that is a valid post id, repeats included."""
    refs = []
    for match in POST_REF_RE.finditer(text):
        digits = match.group(1)
        # \d also matches non-ASCII digits; those runs are not post ids
        if not digits.isascii() or len(digits.lstrip("0")) > MAX_POST_ID_DIGITS:
            continue
        pid = int(digits)
        if pid <= MAX_POST_ID:
            refs.append(pid)
    return refs


async def gather_batch(aws: Sequence[Awaitable[T]]) -> list[T]:
    """Run *aws* concurrently; on the first failure cancel the rest and re-raise."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def extract_images(detail: dict[str, Any], location: str = "$") -> list[str]:
    """Image urls of the post body and of every reply."""
    images = []
    post = expect_field(detail, "post", Shape.OBJECT, location)
    if expect_field(post, "type", Shape.STRING, f"{location}.post") == "image":
        images.append(expect_field(post, "url", Shape.STRING, f"{location}.post"))
    replies = expect_field(detail, "data", Shape.ARRAY, location)
    for i, reply in enumerate(replies):
        where = f"{location}.data[{i}]"
        reply = expect(reply, Shape.OBJECT, where)
        if expect_field(reply, "type", Shape.STRING, where) == "image":
            images.append(expect_field(reply, "url", Shape.STRING, where))
    return images


@dataclass(frozen=True)
class BatchResult:
    """What one level (or one batch of it) produced."""
    emitted: int = 0
    skipped: int = 0
    images: tuple[str, ...] = ()
    references: tuple[int, ...] = ()

    def __add__(self, other: BatchResult) -> BatchResult:
        return BatchResult(
            emitted=self.emitted + other.emitted,
            skipped=self.skipped + other.skipped,
            images=self.images + other.images,
            references=self.references + other.references,
        )


@dataclass
class ArchiveStats:
    bookmarks: int = 0
    posts: int = 0
    skipped: int = 0
    references: int = 0
    images: int = 0
    levels: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class _ClosureState:
    fetched: set[int] = field(default_factory=set)
    level: int = 0


class Harvester:
    """Orchestrates the full bookmark → archive pipeline."""

    def __init__(
        self,
        cfg: ArchiveConfig,
        *,
        api: HoleAPI | None = None,
        storage: ArchiveStorage | None = None,
        listener: ProgressListener | None = None,
    ) -> None:
        self.cfg = cfg
        self.api = api or HoleAPI(cfg.token, cfg.hole, proxy=cfg.proxy)
        self.storage = storage or ArchiveStorage(cfg.output_dir, overwrite=cfg.overwrite)
        self.listener = listener or LoggingProgressListener()
        self.batch_size = cfg.hole.batch_size
        self.stats = ArchiveStats()
        self._saved_images: dict[str, str] = {}  # file name -> url

    # ── listing ──────────────────────────────────────────────────

    async def list_bookmarks(self) -> list[int]:
        """Walk the attention list page by page until an empty page."""
        pids: list[int] = []
        page = 1
        while True:
            _, value = await self.api.get_attentions(page)
            envelope, _ = check_envelope(value, allow_skip=False)
            posts = expect_field(envelope, "data", Shape.ARRAY)
            if not posts:
                break
            for i, post in enumerate(posts):
                where = f"$.data[{i}]"
                post = expect(post, Shape.OBJECT, where)
                pids.append(expect_post_id(expect_field(post, "pid", Shape.NUMBER, where), f"{where}.pid"))
            self.listener.bookmarks_page(page, len(pids))
            page += 1
        logger.debug("Bookmark list: %d posts over %d pages", len(pids), page - 1)
        return pids

    # ── post details ─────────────────────────────────────────────

    async def _process_detail(self, pid: int, raw: str, value: Any) -> BatchResult:
        envelope, skipped = check_envelope(value, allow_skip=True)
        if skipped:
            logger.debug("Skipping #%d: %s", pid, envelope.get("msg"))
            return BatchResult(skipped=1)

        await self.storage.write_record(raw)

        images = extract_images(envelope)
        post = expect_field(envelope, "post", Shape.OBJECT)
        text = expect_field(post, "text", Shape.STRING, "$.post")
        return BatchResult(
            emitted=1,
            images=tuple(images),
            references=tuple(extract_references(text)),
        )

    async def fetch_batch(self, pids: Sequence[int], level: int) -> BatchResult:
        """Fetch *pids* in concurrent batches and append them to the archive.

        A batch is fully fetched and written before the next one starts.
        """
        result = BatchResult()
        done = 0
        for chunk in chunked(pids, self.batch_size):
            responses = await gather_batch([self.api.get_detail(pid) for pid in chunk])
            for pid, (raw, value) in zip(chunk, responses):
                result += await self._process_detail(pid, raw, value)
            done += len(chunk)
            self.listener.batch_fetched(level, done, len(pids), chunk[0])
        return result

    # ── images ───────────────────────────────────────────────────

    async def _save_image(self, url: str) -> None:
        data = await self.api.download_image(url)
        await self.storage.save_image(url, data)

    async def save_images(self, urls: Sequence[str]) -> int:
        """Download images not saved earlier in this run.  Returns the count saved.

        Files are named by the last url segment, so only the first url seen for
        a given file name is downloaded.
        """
        todo: list[str] = []
        claimed = dict(self._saved_images)
        for url in unique(urls):
            name = image_filename(url)
            if name in claimed:
                if claimed[name] != url:
                    logger.warning("Skipping image %s: %s already saved from %s", url, name, claimed[name])
                continue
            claimed[name] = url
            todo.append(url)

        done = 0
        for chunk in chunked(todo, self.batch_size):
            await gather_batch([self._save_image(url) for url in chunk])
            self._saved_images.update((image_filename(url), url) for url in chunk)
            done += len(chunk)
            self.listener.images_saved(done, len(todo))
        self.stats.images += done
        return done

    # ── closure ──────────────────────────────────────────────────

    async def _harvest_level(self, state: _ClosureState, pids: Sequence[int]) -> BatchResult:
        self.listener.level_started(state.level, len(pids))
        result = await self.fetch_batch(pids, state.level)
        await self.save_images(result.images)
        state.fetched.update(pids)

        self.stats.posts += result.emitted
        self.stats.skipped += result.skipped
        self.stats.levels = state.level + 1
        if state.level > 0:
            self.stats.references += len(pids)
        self.listener.level_finished(state.level, result.emitted, len(result.references))
        return result

    async def harvest(self) -> ArchiveStats:
        """Run the whole pipeline and return the run's counters."""
        bookmarks = unique(await self.list_bookmarks())
        self.stats.bookmarks = len(bookmarks)

        self.storage.prepare()
        await self.storage.open_data()
        try:
            state = _ClosureState()
            result = await self._harvest_level(state, bookmarks)

            await self.storage.write_delimiter()

            for level in range(1, self.cfg.ref_levels + 1):
                pending = [pid for pid in unique(result.references) if pid not in state.fetched]
                if not pending:
                    logger.info("No new references at level %d", level)
                    break
                state.level = level
                result = await self._harvest_level(state, pending)

            await self.storage.close_data()
        finally:
            await self.storage.close()

        self.storage.write_viewer()
        if self.cfg.zip_archive:
            self.storage.make_zip()
        return self.stats

    async def run(self) -> ArchiveStats:
        """``harvest`` plus a single terminal report to the listener."""
        try:
            stats = await self.harvest()
        except Exception as exc:
            self.listener.failed(exc)
            raise
        self.listener.finished(stats)
        return stats

    # ── lifecycle ────────────────────────────────────────────────

    async def close(self) -> None:
        await self.api.close()

    async def __aenter__(self) -> Harvester:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
