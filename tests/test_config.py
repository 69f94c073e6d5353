import pytest

from conftest import POOL
from poolstream.application.config import FetchPolicy, IngestionConfig


def test_defaults():
    cfg = IngestionConfig(pool=POOL)
    assert cfg.chunk_size == 2_000
    assert cfg.avg_block_seconds == 14.0
    assert cfg.poll_interval_s == 1.0
    assert cfg.fetch == FetchPolicy(max_attempts=1, on_exhausted="skip")
    assert cfg.follow_live and cfg.on_disconnect == "resubscribe"


@pytest.mark.parametrize("kw", [
    {"pool": "0x1234"}, {"chunk_size": 0}, {"start_block": -1}, {"target_block": -5},
    {"poll_interval_s": 0}, {"on_disconnect": "ignore"}, {"max_resubscribes": -1}, {"dedupe_window": 0},
    {"resubscribe_backoff_s": -1}, {"target_block": 200},
])
def test_invalid_config(kw):
    kw.setdefault("pool", POOL)
    with pytest.raises(ValueError):
        IngestionConfig(**kw)


@pytest.mark.parametrize("kw", [
    {"max_attempts": 0}, {"backoff_s": -1}, {"on_exhausted": "retry"}, {"min_split_span": 0},
])
def test_invalid_fetch_policy(kw):
    with pytest.raises(ValueError):
        FetchPolicy(**kw)


def test_target_block_only_for_a_bounded_backfill():
    cfg = IngestionConfig(pool=POOL, start_block=100, target_block=200, follow_live=False)
    assert cfg.target_block == 200
