"""Test suite for file-backed checkpoints and the single-writer lock."""

import os

import orjson
import pytest

from conlang.core.types import BatchCheckpoint
from conlang.errors import CheckpointIOError, CheckpointLockedError, ErrorCode
from conlang.storage.checkpoint import CheckpointStore, pid_alive, slugify


# above the largest pid_max Linux allows, so never a running process
DEAD_PID = 4_194_305


def make_checkpoint(**overrides):
    values = dict(
        current_index=3,
        total_words=10,
        processed_words={"water", "apple", "fire"},
        language_name="Kethri",
        vocabulary_size=3,
    )
    values.update(overrides)
    return BatchCheckpoint(**values)


class TestCheckpointStore:

    async def test_save_and_load(self, tmp_path):
        store = CheckpointStore("Kethri", tmp_path)
        checkpoint = make_checkpoint()

        await store.save(checkpoint)
        loaded = await store.load()

        assert loaded.model_dump() == checkpoint.model_dump()
        assert store.path == tmp_path / "Kethri.checkpoint.json"

    async def test_on_disk_format(self, tmp_path):
        store = CheckpointStore("Kethri", tmp_path)
        await store.save(make_checkpoint())

        data = orjson.loads(store.path.read_bytes())
        assert data["currentIndex"] == 3
        assert data["totalWords"] == 10
        assert data["processedWords"] == ["apple", "fire", "water"]
        assert data["languageName"] == "Kethri"
        assert data["vocabularySize"] == 3
        assert "timestamp" in data

    async def test_load_missing(self, tmp_path):
        assert await CheckpointStore("Kethri", tmp_path).load() is None

    async def test_load_corrupt(self, tmp_path):
        store = CheckpointStore("Kethri", tmp_path)
        store.path.write_bytes(b"{not json")

        with pytest.raises(CheckpointIOError) as exc_info:
            await store.load()
        assert exc_info.value.code == ErrorCode.CHECKPOINT_IO

    async def test_discard(self, tmp_path):
        store = CheckpointStore("Kethri", tmp_path)
        await store.save(make_checkpoint())

        await store.discard()
        assert not store.path.exists()

        # discarding twice is harmless
        await store.discard()


class TestLocking:

    def test_second_holder_rejected(self, tmp_path):
        first = CheckpointStore("Kethri", tmp_path)
        second = CheckpointStore("Kethri", tmp_path)

        with first:
            assert first.locked
            assert first.lock_path.exists()
            with pytest.raises(CheckpointLockedError) as exc_info:
                second.acquire()
            assert exc_info.value.code == ErrorCode.CHECKPOINT_LOCKED

        assert not first.lock_path.exists()
        with second:
            assert second.locked

    def test_languages_lock_independently(self, tmp_path):
        with CheckpointStore("Kethri", tmp_path), CheckpointStore("Vaelish", tmp_path):
            pass

    def test_dead_holder_lock_is_taken_over(self, tmp_path):
        store = CheckpointStore("Kethri", tmp_path)
        store.lock_path.write_text(str(DEAD_PID))
        assert store.lock_is_stale()

        with store:
            assert store.locked
            assert store.holder_pid() == os.getpid()
        assert not store.lock_path.exists()

    def test_live_holder_lock_is_kept(self, tmp_path):
        store = CheckpointStore("Kethri", tmp_path)
        store.lock_path.write_text(str(os.getpid()))

        assert not store.lock_is_stale()
        with pytest.raises(CheckpointLockedError):
            store.acquire()
        assert store.lock_path.exists()

    def test_unreadable_lock_is_not_stale(self, tmp_path):
        store = CheckpointStore("Kethri", tmp_path)
        store.lock_path.write_text("")
        assert store.holder_pid() is None
        with pytest.raises(CheckpointLockedError):
            store.acquire()

    async def test_clean(self, tmp_path):
        store = CheckpointStore("Kethri", tmp_path)
        await store.save(make_checkpoint())
        store.lock_path.write_text(str(DEAD_PID))

        assert store.clean() == [store.path, store.lock_path]
        assert await store.load() is None
        assert store.clean() == []

    def test_clean_refuses_live_lock(self, tmp_path):
        store = CheckpointStore("Kethri", tmp_path)
        store.lock_path.write_text(str(os.getpid()))

        with pytest.raises(CheckpointLockedError):
            store.clean()
        assert store.clean(force=True) == [store.lock_path]

    def test_reacquire_is_noop(self, tmp_path):
        store = CheckpointStore("Kethri", tmp_path)
        store.acquire()
        store.acquire()
        store.release()
        assert not store.locked


def test_slugify():
    assert slugify("Kethri") == "Kethri"
    assert slugify("High Elvish/2") == "High_Elvish_2"
    assert slugify("///") == "language"


def test_pid_alive():
    assert pid_alive(os.getpid())
    assert not pid_alive(DEAD_PID)
