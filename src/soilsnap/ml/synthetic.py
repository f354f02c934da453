"""Synthetic predictions used while the real classifier is unavailable.

Produces a distribution with one clear winner: a randomly chosen dominant
label draws from [0.4, 0.7), every other label from [0.0, 0.2), and the
vector is normalized to sum to 1.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from soilsnap.ml.classifier import Prediction

if TYPE_CHECKING:
    from collections.abc import Sequence

DOMINANT_RANGE: tuple[float, float] = (0.4, 0.7)
BACKGROUND_RANGE: tuple[float, float] = (0.0, 0.2)


def _draw(rng: random.Random, bounds: tuple[float, float]) -> float:
    low, high = bounds
    return low + (high - low) * rng.random()


def generate_synthetic_predictions(labels: Sequence[str], rng: random.Random | None = None) -> list[Prediction]:
    """Return one normalized synthetic prediction per label, in label order."""
    if not labels:
        return []

    rng = rng or random.Random()
    dominant = rng.randrange(len(labels))
    raw = [_draw(rng, DOMINANT_RANGE if i == dominant else BACKGROUND_RANGE) for i in range(len(labels))]

    total = sum(raw)
    return [Prediction(class_name=label, probability=value / total) for label, value in zip(labels, raw, strict=True)]
