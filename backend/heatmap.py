"""
heatmap.py
- Inverse-distance-weighted estimate of one metric at any point of a floor plan
- Normalization of a metric value into a 0..1 drawing intensity
- Grid heat-field the client paints; rebuilt from scratch on every request
"""

import math
from typing import List, Optional

from pydantic import ValidationError

from models import HeatCell, HeatField, MetricConfig, Sample, ValueRange, to_number
from settings import (
    CONTRAST_BASE,
    CONTRAST_BOOST,
    HEATMAP_GRID_STEP,
    HEATMAP_IDW_POWER,
    HEATMAP_MAX_DISTANCE,
)


def as_samples(items) -> List[Sample]:
    samples = []
    for item in items or []:
        if isinstance(item, Sample):
            samples.append(item)
            continue
        try:
            samples.append(Sample.model_validate(item))
        except ValidationError:
            continue
    return samples


def get_metric_value(sample, key) -> Optional[float]:
    if sample is None:
        return None
    return to_number(sample.metrics.get(key))


def filter_samples(samples, band=None) -> List[Sample]:
    samples = as_samples(samples)
    if band in (None, "", "all"):
        return samples
    return [s for s in samples if s.band == band]


def metric_range(samples, key) -> Optional[ValueRange]:
    values = [v for v in (get_metric_value(s, key) for s in as_samples(samples)) if v is not None]
    if not values:
        return None
    return ValueRange(min=min(values), max=max(values))


def estimate_value_at(point, samples, metric_key,
                      max_distance=HEATMAP_MAX_DISTANCE, power=HEATMAP_IDW_POWER) -> Optional[float]:
    """
    IDW estimate of metric_key at point (x, y).

    Samples farther than max_distance are ignored, compared on squared
    distance so the cutoff costs no sqrt. Distances under one unit count as
    one, so a query sitting on a sample returns that sample's value.

    Returns None when no sample in range carries a numeric value; callers
    must read that as "no estimate", never as zero.
    """
    if not isinstance(point, (tuple, list)) or len(point) != 2:
        return None
    x, y = (to_number(c) for c in point)
    if x is None or y is None:
        return None

    max_dist_sq = max_distance * max_distance
    weight_sum = 0.0
    value_sum = 0.0
    for s in as_samples(samples):
        dist_sq = (s.x - x) ** 2 + (s.y - y) ** 2
        if dist_sq > max_dist_sq:
            continue
        value = get_metric_value(s, metric_key)
        if value is None:
            continue
        weight = 1.0 / max(math.sqrt(dist_sq), 1.0) ** power
        weight_sum += weight
        value_sum += weight * value

    if not weight_sum:
        return None
    return value_sum / weight_sum


def contrast_for(high_contrast=False):
    return CONTRAST_BOOST if high_contrast else CONTRAST_BASE


def normalize_intensity(value, metric, value_range=None, contrast=CONTRAST_BASE) -> Optional[float]:
    """
    Map value to [0, 1]: metric.bad -> 0, metric.good -> 1.

    good may sit above bad (RSSI) or below it (latency); the direction is
    read off the pair. With value_range (auto-scale) the observed min/max
    replace the fixed anchors, keeping the metric's direction.

    The clamped result is raised to `contrast` to spread mid-range values.
    """
    value = to_number(value)
    if value is None or metric is None:
        return None

    good = to_number(metric.good)
    bad = to_number(metric.bad)
    if good is None or bad is None or good == bad:
        return None

    if value_range is not None:
        low, high = to_number(value_range.min), to_number(value_range.max)
        if low is None or high is None:
            return None
        good, bad = (high, low) if good > bad else (low, high)
        if good == bad:
            return None

    if good > bad:
        t = (value - bad) / (good - bad)
    else:
        t = (bad - value) / (bad - good)
    return max(0.0, min(1.0, t)) ** contrast


def build_heat_field(samples, metric: MetricConfig, width, height, step=HEATMAP_GRID_STEP,
                     band=None, auto_scale=False, high_contrast=False) -> HeatField:
    filtered = filter_samples(samples, band)
    value_range = metric_range(filtered, metric.key) if auto_scale else None
    field = HeatField(metric=metric.key, range=value_range)

    points = [s for s in filtered if get_metric_value(s, metric.key) is not None]
    step = int(step)
    if not points or step <= 0:
        return field

    contrast = contrast_for(high_contrast)
    for gy in range(0, int(height) + 1, step):
        for gx in range(0, int(width) + 1, step):
            value = estimate_value_at((gx, gy), points, metric.key)
            if value is None:
                continue
            intensity = normalize_intensity(value, metric, value_range, contrast)
            # nothing to draw
            if not intensity:
                continue
            field.cells.append(HeatCell(x=gx, y=gy, intensity=intensity))
    return field
