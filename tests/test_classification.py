"""Tests for rule-based classification and collision-safe moves."""

import threading
from pathlib import Path

import pytest

from dropsort.config import TransferConfig
from dropsort.errors import StorageError
from dropsort.organization import ClassificationEngine, MoveExecutor, OutcomeStatus, split_name


def _config(tmp_path: Path, **overrides) -> TransferConfig:
    data = {
        "classify_directory": str(tmp_path / "out"),
        "suffix_rules": {"图片": ["jpg", "png"], "文档": ["txt", "pdf"]},
        "default_type": "其他",
        "ignore_no_suffix": True,
        "sub_app": False,
        "ignore_list": [],
    }
    data.update(overrides)
    return TransferConfig(**data)


def _touch(path: Path, content: str = "data") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_moves_file_into_matching_category(tmp_path: Path) -> None:
    source = _touch(tmp_path / "in" / "photo.JPG")

    outcome = ClassificationEngine().classify(source, _config(tmp_path))

    assert outcome.status is OutcomeStatus.MOVED
    assert outcome.category == "图片"
    assert outcome.destination == tmp_path / "out" / "图片" / "photo.JPG"
    assert outcome.destination.read_text(encoding="utf-8") == "data"
    assert not source.exists()
    assert outcome.renamed is False


def test_extension_matching_is_case_insensitive(tmp_path: Path) -> None:
    engine = ClassificationEngine()
    config = _config(tmp_path)
    upper = _touch(tmp_path / "a" / "IMG.JPG")
    lower = _touch(tmp_path / "b" / "img.jpg")

    first = engine.decide(upper, config)
    second = engine.decide(lower, config)

    assert first.extension == second.extension == "jpg"
    assert first.target_directory == second.target_directory == tmp_path / "out" / "图片"


def test_first_matching_rule_wins(tmp_path: Path) -> None:
    config = _config(tmp_path, suffix_rules={"first": ["zip"], "second": ["zip", "rar"]})
    source = _touch(tmp_path / "in" / "bundle.zip")

    assert ClassificationEngine().decide(source, config).category == "first"


def test_unmatched_extension_uses_default_type(tmp_path: Path) -> None:
    source = _touch(tmp_path / "in" / "blob.xyz")

    outcome = ClassificationEngine().classify(source, _config(tmp_path))

    assert outcome.destination == tmp_path / "out" / "其他" / "blob.xyz"


def test_ignore_list_takes_precedence_over_rules(tmp_path: Path) -> None:
    config = _config(tmp_path, suffix_rules={"临时": ["tmp"]}, ignore_list=["tmp"])
    source = _touch(tmp_path / "in" / "x.tmp")

    outcome = ClassificationEngine().classify(source, config)

    assert outcome.status is OutcomeStatus.SKIPPED_IGNORED
    assert source.exists()
    assert not (tmp_path / "out").exists()


def test_ignore_tokens_match_filename_substrings(tmp_path: Path) -> None:
    config = _config(tmp_path, ignore_list=["cache", ""])
    engine = ClassificationEngine()

    assert engine.decide(_touch(tmp_path / "in" / "MyCACHE_dump.jpg"), config).skip is (
        OutcomeStatus.SKIPPED_IGNORED
    )
    assert engine.decide(_touch(tmp_path / "in" / "holiday.jpg"), config).should_move


@pytest.mark.parametrize("ignore_no_suffix", [True, False])
def test_no_suffix_policy(tmp_path: Path, ignore_no_suffix: bool) -> None:
    source = _touch(tmp_path / "in" / "README")
    config = _config(tmp_path, ignore_no_suffix=ignore_no_suffix)

    outcome = ClassificationEngine().classify(source, config)

    if ignore_no_suffix:
        assert outcome.status is OutcomeStatus.SKIPPED_NO_SUFFIX
        assert source.exists()
    else:
        assert outcome.status is OutcomeStatus.MOVED
        assert outcome.destination == tmp_path / "out" / "其他" / "README"


def test_collisions_receive_numbered_suffix(tmp_path: Path) -> None:
    engine = ClassificationEngine()
    config = _config(tmp_path)
    first = _touch(tmp_path / "one" / "a.txt", "first")
    second = _touch(tmp_path / "two" / "a.txt", "second")
    third = _touch(tmp_path / "three" / "a.txt", "third")

    engine.classify(first, config)
    outcome = engine.classify(second, config)
    engine.classify(third, config)

    target = tmp_path / "out" / "文档"
    assert outcome.renamed is True
    assert (target / "a.txt").read_text(encoding="utf-8") == "first"
    assert (target / "a_1.txt").read_text(encoding="utf-8") == "second"
    assert (target / "a_2.txt").read_text(encoding="utf-8") == "third"


def test_dynamic_category_uses_base_name(tmp_path: Path) -> None:
    config = _config(tmp_path, suffix_rules={"[name]归档": ["zip"]})
    source = _touch(tmp_path / "in" / "report.2024.zip")

    outcome = ClassificationEngine().classify(source, config)

    assert outcome.category == "report.2024归档"
    assert outcome.destination == tmp_path / "out" / "report.2024归档" / "report.2024.zip"


def test_origin_label_nests_output_when_enabled(tmp_path: Path) -> None:
    placeholders = {"{storage}": str(tmp_path / "sd")}
    config = _config(
        tmp_path,
        sub_app=True,
        suffix_rules={"音频": ["mp3"]},
        listen_directories={"下载": ["{storage}/Download"]},
    )
    engine = ClassificationEngine(placeholders)
    inside = _touch(tmp_path / "sd" / "Download" / "song.mp3")
    outside = _touch(tmp_path / "elsewhere" / "track.mp3")

    nested = engine.classify(inside, config)
    flat = engine.classify(outside, config)

    assert nested.destination == tmp_path / "out" / "下载" / "音频" / "song.mp3"
    assert flat.destination == tmp_path / "out" / "音频" / "track.mp3"


def test_origin_is_ignored_when_sub_app_disabled(tmp_path: Path) -> None:
    config = _config(tmp_path, listen_directories={"inbox": [str(tmp_path / "in")]})
    source = _touch(tmp_path / "in" / "note.txt")

    decision = ClassificationEngine().decide(source, config)

    assert decision.origin is None
    assert decision.target_directory == tmp_path / "out" / "文档"


def test_missing_source_is_a_no_op(tmp_path: Path) -> None:
    outcome = ClassificationEngine().classify(tmp_path / "ghost.txt", _config(tmp_path))

    assert outcome.status is OutcomeStatus.MISSING
    assert outcome.destination is None
    assert not (tmp_path / "out").exists()


def test_non_directory_target_raises_storage_error(tmp_path: Path) -> None:
    _touch(tmp_path / "out" / "图片", "not a directory")
    source = _touch(tmp_path / "in" / "photo.png")

    with pytest.raises(StorageError):
        ClassificationEngine().classify(source, _config(tmp_path))

    assert source.exists()


def test_split_name_and_reserve_destination(tmp_path: Path) -> None:
    assert split_name("archive.tar.gz") == ("archive.tar", "gz")
    assert split_name("Makefile") == ("Makefile", "")
    assert split_name(".hidden") == ("", "hidden")

    executor = MoveExecutor()
    _touch(tmp_path / "Makefile")
    assert executor.reserve_destination(tmp_path, "Makefile") == tmp_path / "Makefile_1"
    assert executor.reserve_destination(tmp_path, "Makefile") == tmp_path / "Makefile_2"
    assert executor.reserve_destination(tmp_path, "fresh.txt") == tmp_path / "fresh.txt"
    assert (tmp_path / "fresh.txt").exists()


def test_failed_move_releases_reserved_name(tmp_path: Path) -> None:
    executor = MoveExecutor()
    reserved = executor.reserve_destination(tmp_path, "gone.txt")

    with pytest.raises(StorageError):
        executor.move(tmp_path / "missing" / "gone.txt", reserved)

    assert not reserved.exists()


def test_concurrent_moves_of_same_name_keep_every_file(tmp_path: Path) -> None:
    engine = ClassificationEngine()
    config = _config(tmp_path)
    workers = 8
    rounds = 10

    for round_index in range(rounds):
        sources = [
            _touch(tmp_path / f"src{round_index}-{worker}" / "a.txt", f"{round_index}-{worker}")
            for worker in range(workers)
        ]
        barrier = threading.Barrier(workers)
        errors: list[BaseException] = []

        def _classify(source: Path) -> None:
            barrier.wait()
            try:
                engine.classify(source, config)
            except BaseException as exc:  # surfaced by the assertion below
                errors.append(exc)

        threads = [threading.Thread(target=_classify, args=(source,)) for source in sources]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)
        assert errors == []

    target = tmp_path / "out" / "文档"
    contents = sorted(path.read_text(encoding="utf-8") for path in target.iterdir())
    expected = sorted(f"{r}-{w}" for r in range(rounds) for w in range(workers))
    assert contents == expected
    assert (target / "a.txt").exists()
    assert (target / f"a_{workers * rounds - 1}.txt").exists()


def test_origin_matches_home_relative_listen_paths(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    config = _config(tmp_path, sub_app=True, listen_directories={"dl": ["~/Downloads"]})
    source = _touch(tmp_path / "Downloads" / "paper.txt")

    outcome = ClassificationEngine().classify(source, config)

    assert outcome.destination == tmp_path / "out" / "dl" / "文档" / "paper.txt"
