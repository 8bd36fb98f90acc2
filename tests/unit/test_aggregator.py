"""Unit tests for the aggregator."""

import asyncio
from unittest.mock import Mock

from scene_fetch.aggregator import Aggregator, split_bunches


class TestSplitBunches:
    """Tests for split_bunches()."""

    def test_exact_multiple(self) -> None:
        assert split_bunches(["a", "b", "c", "d"], 2) == [["a", "b"], ["c", "d"]]

    def test_remainder(self) -> None:
        keys = [str(n) for n in range(1203)]
        sizes = [len(bunch) for bunch in split_bunches(keys, 500)]
        assert sizes == [500, 500, 203]

    def test_empty(self) -> None:
        assert split_bunches([], 500) == []


class TestAggregator:
    """Tests for the Aggregator debounce and flush."""

    async def test_window_expiry_flushes(self) -> None:
        on_bunch = Mock()
        on_flushed = Mock()
        aggregator = Aggregator(on_bunch, on_flushed, bunch_size=10, window_ms=5)

        aggregator.add(["a", "b"])
        assert aggregator.scheduled
        assert len(aggregator) == 2

        await asyncio.sleep(0.05)

        on_bunch.assert_called_once_with(["a", "b"])
        on_flushed.assert_called_once_with()
        assert not aggregator.scheduled
        assert len(aggregator) == 0

    async def test_each_add_restarts_window(self) -> None:
        on_bunch = Mock()
        aggregator = Aggregator(on_bunch, bunch_size=10, window_ms=30)

        aggregator.add(["a"])
        await asyncio.sleep(0.02)
        aggregator.add(["b"])
        await asyncio.sleep(0.02)

        # 40ms after the first key, but only 20ms after the last one
        on_bunch.assert_not_called()

        await asyncio.sleep(0.05)
        on_bunch.assert_called_once_with(["a", "b"])

    async def test_flush_splits_into_bunches(self) -> None:
        bunches: list[list[str]] = []
        on_flushed = Mock()
        aggregator = Aggregator(bunches.append, on_flushed, bunch_size=500, window_ms=200)
        keys = [f"id{n}" for n in range(1203)]

        aggregator.add(keys)
        assert aggregator.flush() == 3

        assert [len(bunch) for bunch in bunches] == [500, 500, 203]
        assert [key for bunch in bunches for key in bunch] == keys
        on_flushed.assert_called_once_with()

    async def test_flush_empty_buffer(self) -> None:
        on_flushed = Mock()
        aggregator = Aggregator(Mock(), on_flushed)

        assert aggregator.flush() == 0
        on_flushed.assert_not_called()

    async def test_add_nothing_does_not_arm_timer(self) -> None:
        aggregator = Aggregator(Mock())
        aggregator.add([])
        assert not aggregator.scheduled

    async def test_cancel_drops_buffer(self) -> None:
        on_bunch = Mock()
        aggregator = Aggregator(on_bunch, window_ms=5)

        aggregator.add(["a"])
        aggregator.cancel()
        await asyncio.sleep(0.03)

        on_bunch.assert_not_called()
        assert len(aggregator) == 0
        assert not aggregator.scheduled
