"""Tests for the persisted configuration store."""

from pathlib import Path

import pytest

from dropsort.config import ConfigStore, TransferConfig, read_config
from dropsort.errors import ParseError, StorageError, UnsupportedFormatError


def test_load_creates_default_file(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "transfer_config.fvv"
    store = ConfigStore(path)

    config = store.load()

    assert config == TransferConfig.create_default()
    assert path.exists()
    assert "SuffixList = {" in path.read_text(encoding="utf-8")
    assert store.load() == config


def test_default_path_lives_under_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))

    store = ConfigStore()

    assert store.config_path == tmp_path / ".dropsort" / "transfer_config.fvv"


def test_unsupported_extension_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(UnsupportedFormatError):
        ConfigStore(tmp_path / "rules.ini")


def test_corrupt_file_surfaces_parse_error(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    store = ConfigStore(path)

    with pytest.raises(ParseError):
        store.load()

    # The broken file is left untouched for the user to repair.
    assert path.read_text(encoding="utf-8") == "{not json"


def test_update_replaces_snapshot_and_persists(tmp_path: Path) -> None:
    path = tmp_path / "config.fvv"
    store = ConfigStore(path)
    store.load()
    updated = store.current.model_copy(update={"delay": 5, "default_type": "misc"})

    store.update(updated)

    assert store.current.delay == 5
    assert read_config(path) == updated


def test_import_export_and_reset(tmp_path: Path) -> None:
    store = ConfigStore(tmp_path / "config.fvv")
    store.load()
    source = tmp_path / "incoming.json"
    source.write_text(
        '{"name": "imported", "suffixRules": {"books": ["EPUB", "mobi"]}, "delay": 3}',
        encoding="utf-8",
    )

    imported = store.import_config(source)

    assert imported.name == "imported"
    assert imported.suffix_rules == {"books": ["epub", "mobi"]}
    assert store.current == imported
    assert read_config(tmp_path / "config.fvv") == imported

    exported = tmp_path / "exported.fvv"
    store.export_config(exported)
    assert read_config(exported) == imported

    assert store.reset_to_default() == TransferConfig.create_default()
    assert read_config(tmp_path / "config.fvv") == TransferConfig.create_default()


def test_import_of_malformed_file_keeps_snapshot(tmp_path: Path) -> None:
    store = ConfigStore(tmp_path / "config.fvv")
    before = store.load()
    source = tmp_path / "broken.fvv"
    source.write_text('Name = "oops', encoding="utf-8")

    with pytest.raises(ParseError):
        store.import_config(source)

    assert store.current == before


def test_ensure_classify_directory(tmp_path: Path) -> None:
    store = ConfigStore(tmp_path / "config.json")
    store.update(TransferConfig(classify_directory=str(tmp_path / "out" / "sorted")))

    created = store.ensure_classify_directory()

    assert created.is_dir()

    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    store.update(TransferConfig(classify_directory=str(blocker)))
    with pytest.raises(StorageError):
        store.ensure_classify_directory()
