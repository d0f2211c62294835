"""Confusion threshold: population statistics over bin click counts."""

import enum
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from crowdqa.analytics.bins import Bin
from crowdqa.config import settings


class BinLevel(str, enum.Enum):
    PEAK = "PEAK"
    ACTIVE = "ACTIVE"
    QUIET = "QUIET"


@dataclass(frozen=True)
class ThresholdStats:
    mean: float
    std_dev: float
    threshold: float
    multiplier: float


def compute_threshold(bins: Sequence[Bin], multiplier: Optional[float] = None) -> ThresholdStats:
    """Return mean, population stddev and ``mean + multiplier * stddev``.

    ``multiplier`` defaults to ``settings.CONFUSION_THRESHOLD_MULTIPLIER``;
    lower values flag more intervals as confusion peaks.
    """
    k = settings.CONFUSION_THRESHOLD_MULTIPLIER if multiplier is None else float(multiplier)
    counts = [b.click_count for b in bins]
    if not counts:
        return ThresholdStats(mean=0.0, std_dev=0.0, threshold=0.0, multiplier=k)

    mean = sum(counts) / len(counts)
    variance = sum((count - mean) ** 2 for count in counts) / len(counts)
    std_dev = math.sqrt(variance)
    return ThresholdStats(mean=mean, std_dev=std_dev, threshold=mean + k * std_dev, multiplier=k)


def is_peak(bin_: Bin, threshold: float) -> bool:
    # Zero-click bins are never peaks, even when the threshold is 0
    return bin_.click_count > 0 and bin_.click_count >= threshold


def flag_peaks(bins: Sequence[Bin], threshold: float) -> List[Bin]:
    return [b for b in bins if is_peak(b, threshold)]


def classify_bin(bin_: Bin, threshold: float) -> BinLevel:
    if is_peak(bin_, threshold):
        return BinLevel.PEAK
    if bin_.click_count > 0:
        return BinLevel.ACTIVE
    return BinLevel.QUIET
