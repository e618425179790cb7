"""Tests for the wait backoff policy"""
from itertools import islice

from leasekeeper_cli.backoff import BackoffPolicy


def test_delays_grow_and_cap():
    policy = BackoffPolicy(base_delay=1.0, factor=2.0, max_delay=5.0, jitter=False)
    assert list(islice(policy.delays(), 5)) == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_first_attempt_uses_base_delay():
    policy = BackoffPolicy(jitter=False)
    assert policy.next_delay(1) == 0.5
    assert policy.next_delay(0) == 0.5


def test_jitter_stays_in_range():
    policy = BackoffPolicy(base_delay=2.0, factor=1.0, jitter=True, jitter_range=0.25)
    for attempt in range(1, 50):
        delay = policy.next_delay(attempt)
        assert 1.5 <= delay <= 2.5
