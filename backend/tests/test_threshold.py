"""Confusion threshold statistics and peak flagging."""

import math
import random

import pytest

from crowdqa.analytics.bins import Bin
from crowdqa.analytics.threshold import BinLevel, classify_bin, compute_threshold, flag_peaks
from crowdqa.config import settings

pytestmark = pytest.mark.unit


def make_bins(counts):
    return [
        Bin(index=i, start_minute=i, end_minute=i + 1, click_count=c, unique_attendees=min(c, 1), percentage=0.0)
        for i, c in enumerate(counts)
    ]


def test_empty_bins_give_zero_stats():
    stats = compute_threshold([])
    assert (stats.mean, stats.std_dev, stats.threshold) == (0.0, 0.0, 0.0)
    assert flag_peaks([], stats.threshold) == []


def test_example_scenario_threshold_is_exact():
    counts = [0] * 60
    counts[5], counts[6], counts[40] = 3, 1, 1
    bins = make_bins(counts)

    stats = compute_threshold(bins)

    mean = 5 / 60
    std_dev = math.sqrt((3 - mean) ** 2 / 60 + 2 * (1 - mean) ** 2 / 60 + 57 * mean ** 2 / 60)
    assert stats.mean == pytest.approx(0.0833333333)
    assert stats.std_dev == pytest.approx(std_dev)
    assert stats.threshold == pytest.approx(mean + 1.2 * std_dev)
    assert stats.threshold == pytest.approx(0.587318, abs=1e-6)
    assert [b.index for b in flag_peaks(bins, stats.threshold)] == [5, 6, 40]


def test_uses_population_not_sample_deviation():
    stats = compute_threshold(make_bins([2, 4, 4, 4, 5, 5, 7, 9]))
    assert stats.mean == pytest.approx(5.0)
    assert stats.std_dev == pytest.approx(2.0)
    assert stats.threshold == pytest.approx(5.0 + 1.2 * 2.0)


def test_multiplier_defaults_to_setting_and_is_overridable(monkeypatch):
    bins = make_bins([0, 0, 0, 10])
    assert compute_threshold(bins).multiplier == settings.CONFUSION_THRESHOLD_MULTIPLIER

    loose = compute_threshold(bins, multiplier=0.0)
    assert loose.threshold == pytest.approx(loose.mean)

    monkeypatch.setattr(settings, "CONFUSION_THRESHOLD_MULTIPLIER", 2.0)
    strict = compute_threshold(bins)
    assert strict.multiplier == 2.0
    assert strict.threshold == pytest.approx(strict.mean + 2.0 * strict.std_dev)


def test_bin_exactly_at_threshold_is_flagged():
    bins = make_bins([2, 2, 2, 2])
    stats = compute_threshold(bins)
    assert stats.std_dev == 0.0
    assert stats.threshold == pytest.approx(2.0)
    assert len(flag_peaks(bins, stats.threshold)) == 4


def test_uniform_zero_clicks_flag_nothing():
    bins = make_bins([0] * 30)
    stats = compute_threshold(bins)
    assert stats.threshold == 0.0
    assert flag_peaks(bins, stats.threshold) == []


def test_classify_bin_levels():
    bins = make_bins([0, 1, 9])
    threshold = compute_threshold(bins).threshold
    assert [classify_bin(b, threshold) for b in bins] == [BinLevel.QUIET, BinLevel.ACTIVE, BinLevel.PEAK]


def test_compute_threshold_is_idempotent():
    bins = make_bins([3, 0, 1, 4, 1])
    assert compute_threshold(bins) == compute_threshold(bins)


@pytest.mark.parametrize("seed", range(25))
def test_raising_a_bin_at_or_above_mean_never_lowers_threshold(seed):
    rng = random.Random(seed)
    counts = [rng.choice([0, 0, 0, 1, 2, 5]) for _ in range(rng.randint(15, 90))]
    before = compute_threshold(make_bins(counts))
    candidates = [i for i, c in enumerate(counts) if c >= before.mean]
    target = rng.choice(candidates)

    counts[target] += rng.randint(1, 6)
    after = compute_threshold(make_bins(counts))

    assert after.threshold >= before.threshold - 1e-12


@pytest.mark.parametrize("seed", range(25))
def test_raising_a_flagged_bin_keeps_it_flagged(seed):
    rng = random.Random(1000 + seed)
    counts = [rng.choice([0, 0, 1, 1, 3, 8]) for _ in range(rng.randint(15, 90))]
    counts[rng.randrange(len(counts))] = 15
    bins = make_bins(counts)
    flagged = flag_peaks(bins, compute_threshold(bins).threshold)
    assert flagged
    target = rng.choice(flagged).index

    counts[target] += rng.randint(1, 20)
    raised = make_bins(counts)
    peaks = flag_peaks(raised, compute_threshold(raised).threshold)

    assert target in [b.index for b in peaks]
