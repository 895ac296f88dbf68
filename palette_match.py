#!/usr/bin/env python3
"""
Match colors against a reference palette.

find_closest_matches() ranks a palette for one color. match_dominant_colors()
applies the per-image policy on top: a few heaviest dominant colors, their
closest chips, no chip claimed twice.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

from color_space import rgb_to_lab
from delta_e import DEFAULT_METRIC, get_metric
from palette import Palette, ReferenceColor


@dataclass
class Match:
    """A reference chip and its distance to a sampled color."""
    reference: ReferenceColor
    distance: float
    weight: Optional[float] = None  # Weight of the dominant color matched against
    source_rgb: Optional[tuple] = None

    @property
    def reference_id(self) -> str:
        return self.reference.id


@dataclass(frozen=True)
class MatchPolicy:
    """How many dominant colors to match and how strictly."""
    max_colors: int = 3  # Heaviest dominant colors considered
    matches_per_color: int = 1  # Closest chips taken per dominant color
    metric: str = DEFAULT_METRIC
    max_distance: Optional[float] = None  # Accept only distance < this


# Single-image analysis: the heaviest three colors, one chip each
AUTO_MATCH = MatchPolicy(max_colors=3, matches_per_color=1, metric='ciede2000')

# Bulk pass over every image: more colors, two chips each, plain CIE76
BULK_MATCH = MatchPolicy(max_colors=5, matches_per_color=2, metric='cie76')

POLICIES = {
    'auto': AUTO_MATCH,
    'bulk': BULK_MATCH,
}


def _as_palette(palette: Union[Palette, Sequence[ReferenceColor]]) -> Palette:
    if isinstance(palette, Palette):
        return palette
    return Palette(palette)


def find_closest_matches(color, palette: Union[Palette, Sequence[ReferenceColor]],
                         limit: int = 3, metric: str = DEFAULT_METRIC) -> list[Match]:
    """
    Rank palette chips by perceptual distance to an RGB color.

    Args:
        color: (r, g, b) in 0-255
        palette: Palette, or a sequence of ReferenceColor (converted on the fly;
                 build a Palette once when matching many colors)
        limit: Maximum number of matches to return
        metric: 'ciede2000' or 'cie76'

    Returns:
        Up to `limit` matches, closest first. An empty palette gives [].
    """
    if isinstance(limit, bool) or not isinstance(limit, (int, np.integer)) or limit < 0:
        raise ValueError(f"limit must be a non-negative integer, got {limit!r}")
    distance_fn = get_metric(metric)
    palette = _as_palette(palette)
    if len(palette) == 0 or limit == 0:
        return []

    lab = rgb_to_lab(color)
    distances = np.atleast_1d(distance_fn(lab, palette.lab))
    order = np.argsort(distances, kind='stable')[:limit]

    source_rgb = tuple(int(c) for c in color)
    return [
        Match(reference=palette[i], distance=float(distances[i]), source_rgb=source_rgb)
        for i in order
    ]


def match_dominant_colors(dominant_colors, palette: Union[Palette, Sequence[ReferenceColor]],
                          max_colors: int = 3, matches_per_color: int = 1,
                          metric: str = DEFAULT_METRIC,
                          max_distance: Optional[float] = None) -> list[Match]:
    """
    Match the heaviest dominant colors to palette chips, without repeats.

    Dominant colors are visited heaviest first. If a chip was already claimed
    by a heavier color it is skipped (the lighter color does not fall back to
    its next-best chip).

    Args:
        dominant_colors: DominantColor list (any order)
        palette: Reference chips
        max_colors: How many of the heaviest dominant colors to match
        matches_per_color: Closest chips taken for each dominant color
        metric: 'ciede2000' or 'cie76'
        max_distance: If set, only matches with distance < max_distance count

    Returns:
        Matches in the order they were claimed
    """
    if max_colors < 0 or matches_per_color < 0:
        raise ValueError("max_colors and matches_per_color must be >= 0")
    palette = _as_palette(palette)

    top = sorted(dominant_colors, key=lambda c: c.weight, reverse=True)[:max_colors]

    matches = []
    claimed = set()
    for dominant in top:
        for match in find_closest_matches(dominant.rgb, palette, matches_per_color, metric):
            if match.reference_id in claimed:
                continue
            if max_distance is not None and not match.distance < max_distance:
                continue
            claimed.add(match.reference_id)
            match.weight = dominant.weight
            matches.append(match)

    return matches


def match_with_policy(dominant_colors, palette, policy: MatchPolicy = AUTO_MATCH) -> list[Match]:
    """Run match_dominant_colors() with the settings of a MatchPolicy."""
    return match_dominant_colors(
        dominant_colors, palette,
        max_colors=policy.max_colors,
        matches_per_color=policy.matches_per_color,
        metric=policy.metric,
        max_distance=policy.max_distance,
    )
