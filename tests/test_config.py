from datetime import datetime
from pathlib import Path

import pytest

from treasurehole.config import ArchiveConfig, HoleConfig, default_output_dir


class TestHoleConfig:
    def test_from_env_defaults(self, monkeypatch):
        for name in ("HOLE_API_BASE", "HOLE_IMAGE_BASE", "HOLE_TIMEOUT", "HOLE_BATCH_SIZE"):
            monkeypatch.delenv(name, raising=False)
        assert HoleConfig.from_env() == HoleConfig()

    def test_from_env_overrides(self, monkeypatch):
        monkeypatch.setenv("HOLE_API_BASE", "https://api.example/")
        monkeypatch.setenv("HOLE_IMAGE_BASE", "https://img.example")
        monkeypatch.setenv("HOLE_TIMEOUT", "5.5")
        monkeypatch.setenv("HOLE_BATCH_SIZE", "3")
        cfg = HoleConfig.from_env()
        assert cfg.api_base == "https://api.example"
        assert cfg.image_base == "https://img.example"
        assert cfg.timeout == 5.5
        assert cfg.batch_size == 3

    def test_from_env_rejects_zero_batch(self, monkeypatch):
        monkeypatch.setenv("HOLE_BATCH_SIZE", "0")
        with pytest.raises(ValueError):
            HoleConfig.from_env()

    def test_archive_config_reads_env_by_default(self, monkeypatch):
        monkeypatch.setenv("HOLE_BATCH_SIZE", "7")
        cfg = ArchiveConfig(token="t", output_dir=Path("out"))
        assert cfg.hole.batch_size == 7


class TestArchiveConfig:
    def test_levels_bounds(self):
        ArchiveConfig(token="t", output_dir=Path("out"), ref_levels=0, hole=HoleConfig())
        ArchiveConfig(token="t", output_dir=Path("out"), ref_levels=10, hole=HoleConfig())
        with pytest.raises(ValueError):
            ArchiveConfig(token="t", output_dir=Path("out"), ref_levels=11, hole=HoleConfig())

    def test_empty_token(self):
        with pytest.raises(ValueError):
            ArchiveConfig(token="", output_dir=Path("out"), hole=HoleConfig())


def test_default_output_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert default_output_dir("abc", datetime(2021, 3, 4, 5, 6)) == tmp_path / "20210304-0506-abc"
