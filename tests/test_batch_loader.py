"""Tests for bounded-memory batch loading."""

from __future__ import annotations

import pytest

from relcollect.cancellation import CancellationToken
from relcollect.errors import CancellationError, SinkError, ValidationError
from relcollect.storage import BatchLoader, load_all


@pytest.mark.parametrize(
    ("count", "batch_size", "expected_sizes"),
    [
        (0, 10, []),
        (1, 10, [1]),
        (10, 10, [10]),
        (25, 10, [10, 10, 5]),
        (1200, 500, [500, 500, 200]),
    ],
)
def test_records_are_flushed_in_fixed_batches(
    recording_sink, make_records, count: int, batch_size: int, expected_sizes: list[int]
) -> None:
    sink = recording_sink()
    loader = BatchLoader(sink)

    total = loader.load_all(make_records(count), batch_size)

    assert total == count
    assert [len(batch) for batch in sink.batches] == expected_sizes
    assert loader.batches_flushed == len(expected_sizes)
    assert [record.full_path for record in sink.stored] == [
        record.full_path for record in make_records(count)
    ]


def test_loader_never_buffers_more_than_one_batch(recording_sink, make_records) -> None:
    sink = recording_sink()
    pulled = 0
    high_water = 0

    def _records():
        nonlocal pulled, high_water
        for record in make_records(23):
            pulled += 1
            high_water = max(high_water, pulled - len(sink.stored))
            yield record

    BatchLoader(sink).load_all(_records(), 5)

    assert high_water <= 5


def test_failed_flush_reports_previously_committed_records(recording_sink, make_records) -> None:
    sink = recording_sink(fail_on=3)

    with pytest.raises(SinkError) as excinfo:
        BatchLoader(sink).load_all(make_records(50), 10)

    assert excinfo.value.committed == 20
    assert "flush 3 rejected" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert len(sink.stored) == 20


def test_first_flush_failure_commits_nothing(recording_sink, make_records) -> None:
    sink = recording_sink(fail_on=1)

    with pytest.raises(SinkError) as excinfo:
        BatchLoader(sink).load_all(make_records(3), 10)

    assert excinfo.value.committed == 0
    assert sink.stored == []


@pytest.mark.parametrize("batch_size", [0, -1, True, 2.5, "10"])
def test_invalid_batch_size_is_rejected_before_reading(recording_sink, batch_size) -> None:
    sink = recording_sink()
    consumed = []

    def _records():
        consumed.append(True)
        yield from ()

    with pytest.raises(ValidationError):
        BatchLoader(sink).load_all(_records(), batch_size)

    assert consumed == []
    assert sink.calls == 0


def test_progress_callback_receives_cumulative_counts(recording_sink, make_records) -> None:
    seen: list[int] = []

    BatchLoader(recording_sink(), on_progress=seen.append).load_all(make_records(7), 3)

    assert seen == [3, 6, 7]


def test_failing_progress_callback_does_not_abort_the_run(recording_sink, make_records) -> None:
    sink = recording_sink()

    def _explode(count: int) -> None:
        raise RuntimeError("display went away")

    total = BatchLoader(sink, on_progress=_explode).load_all(make_records(4), 2)

    assert total == 4
    assert len(sink.batches) == 2


def test_cancellation_is_observed_at_batch_boundary(recording_sink, make_records) -> None:
    sink = recording_sink()
    token = CancellationToken()

    def _cancel_after_first(count: int) -> None:
        token.cancel("user interrupt")

    loader = BatchLoader(sink, cancel_token=token, on_progress=_cancel_after_first)
    with pytest.raises(CancellationError, match="user interrupt") as excinfo:
        loader.load_all(make_records(9), 3)

    assert excinfo.value.committed == 3
    assert len(sink.batches) == 1


def test_module_level_load_all_uses_a_fresh_loader(recording_sink, make_records) -> None:
    sink = recording_sink()

    assert load_all(make_records(5), 2, sink) == 5
    assert [len(batch) for batch in sink.batches] == [2, 2, 1]


def test_loader_can_be_reused(recording_sink, make_records) -> None:
    sink = recording_sink()
    loader = BatchLoader(sink)

    loader.load_all(make_records(4), 2)
    loader.load_all(make_records(1), 2)

    assert loader.batches_flushed == 1
    assert len(sink.stored) == 5


def test_totals_follow_counts_reported_by_sink(recording_sink, make_records) -> None:
    sink = recording_sink(shortfall=1)
    seen: list[int] = []

    total = BatchLoader(sink, on_progress=seen.append).load_all(make_records(7), 3)

    assert total == 4
    assert seen == [2, 4, 4]
    assert len(sink.stored) == 7


def test_committed_follows_counts_reported_by_sink(recording_sink, make_records) -> None:
    sink = recording_sink(fail_on=3, shortfall=1)

    with pytest.raises(SinkError) as excinfo:
        BatchLoader(sink).load_all(make_records(30), 10)

    assert excinfo.value.committed == 18
