import random

import pytest

from enrollbot.v1.infra.queue.pacing import TYPING_MAX_MS, TYPING_MIN_MS, Pacer


def test_interval_within_range():
    pacer = Pacer(rng=random.Random(7))

    for _ in range(50):
        assert 5000 <= pacer.interval_ms((5000, 15000)) <= 15000


def test_fixed_and_degenerate_ranges():
    pacer = Pacer()

    assert pacer.interval_ms(1500) == 1500
    assert pacer.interval_ms((250, 250)) == 250
    assert pacer.interval_ms((0, 0)) == 0


def test_inverted_range_is_swapped():
    pacer = Pacer(rng=random.Random(1))

    assert 100 <= pacer.interval_ms([300, 100]) <= 300


def test_malformed_range_rejected():
    with pytest.raises(ValueError, match="min_ms, max_ms"):
        Pacer().interval_ms((1, 2, 3))


@pytest.mark.asyncio
async def test_pause_sleeps_in_seconds(sleeps):
    pacer = Pacer(sleep=sleeps)

    used = await pacer.pause((2500, 2500))

    assert used == 2500
    assert sleeps.calls == [2.5]


@pytest.mark.parametrize(
    "message,base",
    [
        ("", TYPING_MIN_MS),
        ("x" * 100, 4000),
        ("x" * 1000, TYPING_MAX_MS),
    ],
)
def test_typing_duration_is_clamped_with_jitter(message, base):
    pacer = Pacer(rng=random.Random(3))

    duration = pacer.typing_duration_ms(message)

    assert base * 0.8 <= duration <= base * 1.2
