"""Shared fixtures: an in-memory hole API served through httpx.MockTransport."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import pytest

from treasurehole.api import HoleAPI
from treasurehole.config import ArchiveConfig, HoleConfig
from treasurehole.harvester import Harvester
from treasurehole.progress import ProgressListener

API_BASE = "https://api.test"
IMAGE_BASE = "https://img.test"


def detail(pid: int, text: str = "", *, image: str | None = None, replies: list[dict] | None = None) -> dict:
    """A successful detail response for *pid*."""
    post: dict[str, Any] = {"pid": pid, "type": "text", "text": text, "timestamp": 1600000000}
    if image is not None:
        post["type"] = "image"
        post["url"] = image
    return {"code": 0, "msg": "", "post": post, "data": replies or []}


def reply(text: str = "", *, image: str | None = None) -> dict:
    entry: dict[str, Any] = {"type": "text", "text": text, "name": "Alice"}
    if image is not None:
        entry["type"] = "image"
        entry["url"] = image
    return entry


class FakeHole:
    """Routes listing, detail and image requests to canned responses."""

    def __init__(self, pages: list[list[int]], details: dict[int, dict], images: dict[str, bytes] | None = None) -> None:
        self.pages = pages
        self.details = details
        self.images = images or {}
        self.requests: list[httpx.Request] = []

    def detail_requests(self) -> list[int]:
        return [
            int(r.url.params["pid"]) for r in self.requests
            if r.url.path == "/v3/contents/post/detail"
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.url.host == "img.test":
            key = path.lstrip("/")
            if key in self.images:
                return httpx.Response(200, content=self.images[key])
            return httpx.Response(404)
        if path == "/v3/contents/post/attentions":
            page = int(request.url.params["page"])
            pids = self.pages[page - 1] if page <= len(self.pages) else []
            return httpx.Response(200, json={"code": 0, "msg": "", "data": [{"pid": p} for p in pids]})
        if path == "/v3/contents/post/detail":
            pid = int(request.url.params["pid"])
            return httpx.Response(200, json=self.details[pid])
        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class RecordingListener(ProgressListener):
    def __init__(self) -> None:
        self.events: list[tuple] = []

    def bookmarks_page(self, page: int, total: int) -> None:
        self.events.append(("page", page, total))

    def level_started(self, level: int, count: int) -> None:
        self.events.append(("level", level, count))

    def batch_fetched(self, level: int, done: int, total: int, first_pid: int) -> None:
        self.events.append(("batch", level, done, total))

    def images_saved(self, done: int, total: int) -> None:
        self.events.append(("images", done, total))

    def level_finished(self, level: int, emitted: int, references: int) -> None:
        self.events.append(("level_done", level, emitted))

    def finished(self, stats) -> None:
        self.events.append(("finished",))

    def failed(self, error: BaseException) -> None:
        self.events.append(("failed", error))


def read_archive(root: Path) -> list:
    """Parse ``data.js`` into a list of pids and the ``'---'`` delimiter."""
    lines = (root / "data.js").read_text(encoding="utf-8").splitlines()
    assert lines[0] == "const posts = ["
    entries: list = []
    for line in lines[1:]:
        if line == "];":
            entries.append("]")
            continue
        assert line.endswith(",")
        body = line[:-1]
        if body == "'---'":
            entries.append("---")
        else:
            entries.append(json.loads(body)["post"]["pid"])
    return entries


@pytest.fixture
def hole_config() -> HoleConfig:
    return HoleConfig(api_base=API_BASE, image_base=IMAGE_BASE, batch_size=10)


@pytest.fixture
def make_harvester(tmp_path: Path, hole_config: HoleConfig):
    """Build a Harvester wired to a FakeHole and writing under tmp_path."""

    def _make(fake: FakeHole, *, levels: int = 2, batch_size: int | None = None, **kwargs: Any) -> Harvester:
        hole = hole_config if batch_size is None else HoleConfig(
            api_base=API_BASE, image_base=IMAGE_BASE, batch_size=batch_size
        )
        cfg = ArchiveConfig(token="tok123", output_dir=tmp_path / "out", ref_levels=levels, hole=hole, **kwargs)
        api = HoleAPI(cfg.token, hole, transport=fake.transport())
        return Harvester(cfg, api=api, listener=RecordingListener())

    return _make
