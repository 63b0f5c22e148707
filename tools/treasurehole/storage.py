"""Disk storage layer – the offline archive directory.

Layout::

    <output>/data.js      const posts = [ <record>, ..., '---', ..., ];
    <output>/images/      downloaded images, named by last url segment
    <output>/index.html   static viewer
"""

from __future__ import annotations

import logging
import shutil
from importlib import resources
from pathlib import Path
from typing import Any

import aiofiles

from .errors import ArchiveIOError

logger = logging.getLogger("treasurehole.storage")

DATA_FILE = "data.js"
IMAGES_DIR = "images"
VIEWER_FILE = "index.html"

DATA_HEADER = "const posts = [\n"
RECORD_SEPARATOR = ",\n"
LEVEL_DELIMITER = "'---',\n"
DATA_FOOTER = "];\n"


def image_filename(url: str) -> str:
    """Final path segment of an image url."""
    return url.split("/")[-1]


class ArchiveStorage:
    """Owns the archive directory and the single writer of ``data.js``."""

    def __init__(self, root: Path, *, overwrite: bool = False) -> None:
        self.root = Path(root)
        self.overwrite = overwrite
        self._data: Any = None

    @property
    def data_path(self) -> Path:
        return self.root / DATA_FILE

    @property
    def images_dir(self) -> Path:
        return self.root / IMAGES_DIR

    # ── directory setup ──────────────────────────────────────────

    def prepare(self) -> None:
        """Create a fresh output directory with an ``images/`` subdirectory."""
        try:
            if self.root.exists():
                if not self.overwrite and any(self.root.iterdir()):
                    raise FileExistsError(f"{self.root} exists and is not empty")
                logger.info("Removing existing contents of %s", self.root)
                shutil.rmtree(self.root)
            self.images_dir.mkdir(parents=True)
        except OSError as exc:
            raise ArchiveIOError(self.root, exc) from exc

    # ── data.js stream ───────────────────────────────────────────

    async def _write(self, text: str) -> None:
        if self._data is None:
            raise RuntimeError("data file is not open")
        try:
            await self._data.write(text)
            await self._data.flush()
        except OSError as exc:
            raise ArchiveIOError(self.data_path, exc) from exc

    async def open_data(self) -> None:
        try:
            self._data = await aiofiles.open(self.data_path, "w", encoding="utf-8")
        except OSError as exc:
            raise ArchiveIOError(self.data_path, exc) from exc
        await self._write(DATA_HEADER)

    async def write_record(self, raw: str) -> None:
        """Append one raw post record and flush it to disk."""
        await self._write(raw + RECORD_SEPARATOR)

    async def write_delimiter(self) -> None:
        """Mark the end of the bookmarked posts."""
        await self._write(LEVEL_DELIMITER)

    async def close_data(self) -> None:
        await self._write(DATA_FOOTER)
        await self.close()

    async def close(self) -> None:
        if self._data is not None:
            data, self._data = self._data, None
            await data.close()

    # ── images ───────────────────────────────────────────────────

    async def save_image(self, url: str, data: bytes) -> Path:
        path = self.images_dir / image_filename(url)
        try:
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as exc:
            raise ArchiveIOError(path, exc) from exc
        logger.debug("Saved %s (%d bytes)", path.name, len(data))
        return path

    # ── viewer / packaging ───────────────────────────────────────

    def write_viewer(self) -> Path:
        """Copy the bundled static viewer into the archive."""
        path = self.root / VIEWER_FILE
        try:
            html = resources.files("treasurehole.viewer").joinpath(VIEWER_FILE).read_bytes()
            path.write_bytes(html)
        except OSError as exc:
            raise ArchiveIOError(path, exc) from exc
        return path

    def make_zip(self) -> Path:
        """Package the archive directory as ``<root>.zip`` next to it."""
        try:
            archive = shutil.make_archive(
                str(self.root), "zip", root_dir=self.root.parent, base_dir=self.root.name
            )
        except OSError as exc:
            raise ArchiveIOError(self.root, exc) from exc
        logger.info("Packed archive into %s", archive)
        return Path(archive)
