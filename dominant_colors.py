#!/usr/bin/env python3
"""
Extract dominant colors from sampled pixels.

Pipeline:
1. Sample the image on a regular grid
2. Drop background-like pixels (near white, near black, grays)
3. Cluster in RGB with k-means (k-means++ seeding)
4. Weight each cluster by its share of the sample
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.spatial.distance import cdist

from color_space import rgb_to_hex


# =============================================================================
# Constants
# =============================================================================

DEFAULT_K = 5
SAMPLE_STEP = 5  # Take every 5th pixel in each dimension
MIN_FOREGROUND_PIXELS = 50  # Below this, fall back to the unfiltered sample
MIN_WEIGHT = 0.02  # Clusters at or below this share are noise
MAX_ITERATIONS = 15
CONVERGENCE_TOLERANCE = 1  # Summed absolute channel movement per centroid


# =============================================================================
# Data Types
# =============================================================================

@dataclass(frozen=True)
class BackgroundFilter:
    """Thresholds for classifying a pixel as background.

    These were tuned by eye on studio product shots; other lighting setups
    may need different values.
    """
    max_brightness: float = 240  # Brighter than this: white backdrop
    min_brightness: float = 15  # Darker than this: black backdrop
    gray_saturation: float = 0.1  # Light grays: saturation below this...
    gray_brightness: float = 180  # ...and brightness above this
    min_saturation: float = 0.05  # Any near-neutral pixel


@dataclass
class DominantColor:
    """A cluster center and its share of the sampled pixels."""
    rgb: tuple  # (r, g, b) ints
    weight: float  # count / total samples, in (0, 1]
    count: int

    @property
    def hex(self) -> str:
        return rgb_to_hex(self.rgb)


# =============================================================================
# Sampling and Background Filtering
# =============================================================================

def _as_pixels(pixels) -> np.ndarray:
    arr = np.asarray(pixels, dtype=np.float64)
    if arr.size == 0:
        return arr.reshape(0, 3)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValueError(f"pixels must be an (N, 3) array, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValueError("pixels contain non-finite values")
    return arr


def sample_pixels(image: np.ndarray, step: int = SAMPLE_STEP) -> np.ndarray:
    """
    Take every `step`-th pixel in each dimension of a decoded image.

    Args:
        image: Array of shape (height, width, channels), channels >= 3.
               Channels past the third (alpha) are ignored.
        step: Grid stride in pixels

    Returns:
        (N, 3) array of RGB samples in row-major order
    """
    if step < 1:
        raise ValueError(f"step must be >= 1, got {step}")
    image = np.asarray(image)
    if image.ndim != 3 or image.shape[2] < 3:
        raise ValueError(f"image must have shape (height, width, >=3), got {image.shape}")
    return image[::step, ::step, :3].reshape(-1, 3)


def background_mask(pixels, bg: Optional[BackgroundFilter] = None) -> np.ndarray:
    """Boolean mask, True where a pixel looks like background."""
    bg = bg or BackgroundFilter()
    arr = _as_pixels(pixels)

    brightness = arr.mean(axis=1)
    cmax = arr.max(axis=1, initial=0)
    cmin = arr.min(axis=1, initial=255)
    safe_max = np.where(cmax == 0, 1, cmax)
    saturation = np.where(cmax == 0, 0.0, (cmax - cmin) / safe_max)

    return (
        (brightness > bg.max_brightness)
        | (brightness < bg.min_brightness)
        | ((saturation < bg.gray_saturation) & (brightness > bg.gray_brightness))
        | (saturation < bg.min_saturation)
    )


def is_background_color(rgb, bg: Optional[BackgroundFilter] = None) -> bool:
    """Check a single (r, g, b) pixel against the background thresholds."""
    return bool(background_mask(np.asarray(rgb, dtype=np.float64).reshape(1, 3), bg)[0])


def filter_background(pixels, bg: Optional[BackgroundFilter] = None,
                      min_pixels: int = MIN_FOREGROUND_PIXELS) -> np.ndarray:
    """
    Drop background pixels.

    If fewer than `min_pixels` survive (e.g. a white product on a white
    backdrop), the unfiltered sample is returned instead.
    """
    arr = _as_pixels(pixels)
    if len(arr) == 0:
        return arr
    foreground = arr[~background_mask(arr, bg)]
    if len(foreground) < min_pixels:
        return arr
    return foreground


# =============================================================================
# K-Means
# =============================================================================

def _make_rng(seed=None, rng: Optional[np.random.Generator] = None) -> np.random.Generator:
    if rng is not None:
        return rng
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)


def kmeans_pp_init(points: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    """
    Pick k initial centroids, k-means++ style.

    The first is uniform; each next one is drawn with probability
    proportional to its squared distance from the nearest chosen centroid.
    """
    centroids = np.empty((k, 3), dtype=np.float64)
    centroids[0] = points[rng.integers(len(points))]
    min_dist = np.sum((points - centroids[0]) ** 2, axis=1)

    for i in range(1, k):
        total = min_dist.sum()
        if total > 0:
            idx = rng.choice(len(points), p=min_dist / total)
        else:
            # Every point already sits on a centroid
            idx = 0
        centroids[i] = points[idx]
        min_dist = np.minimum(min_dist, np.sum((points - centroids[i]) ** 2, axis=1))

    return centroids


def kmeans(points: np.ndarray, k: int, rng: np.random.Generator,
           max_iter: int = MAX_ITERATIONS,
           tol: float = CONVERGENCE_TOLERANCE) -> tuple[np.ndarray, np.ndarray, int]:
    """
    Cluster RGB points into k groups.

    Centroids are integer-rounded means. A centroid that loses all its members
    stays where it is, so k never changes during iteration.

    Returns:
        (centroids, labels, iterations) where centroids is (k, 3) and labels
        maps each point to its centroid index.
    """
    if max_iter < 1:
        raise ValueError(f"max_iter must be >= 1, got {max_iter!r}")
    centroids = kmeans_pp_init(points, k, rng)
    labels = np.zeros(len(points), dtype=np.intp)
    iterations = 0

    for iterations in range(1, max_iter + 1):
        # argmin returns the first index on ties
        labels = np.argmin(cdist(points, centroids, 'sqeuclidean'), axis=1)

        converged = True
        for i in range(k):
            members = points[labels == i]
            if len(members) == 0:
                continue
            new_centroid = np.round(members.mean(axis=0))
            if np.abs(new_centroid - centroids[i]).sum() > tol:
                converged = False
            centroids[i] = new_centroid

        if converged:
            break

    return centroids, labels, iterations


# =============================================================================
# Extraction
# =============================================================================

def extract_dominant_colors(pixels, k: int = DEFAULT_K, seed=None,
                            rng: Optional[np.random.Generator] = None,
                            min_weight: float = MIN_WEIGHT,
                            background: Optional[BackgroundFilter] = None,
                            min_pixels: int = MIN_FOREGROUND_PIXELS,
                            max_iter: int = MAX_ITERATIONS) -> list[DominantColor]:
    """
    Find the dominant colors in a pixel sample.

    Args:
        pixels: (N, 3) RGB samples, e.g. from sample_pixels()
        k: Number of clusters
        seed: Seed for the centroid initialization (int, Generator or None)
        rng: Explicit random generator, takes precedence over seed
        min_weight: Clusters with weight <= this are dropped
        background: Background thresholds (defaults to BackgroundFilter())
        min_pixels: Minimum foreground pixels before falling back to all pixels
        max_iter: Iteration cap for k-means

    Returns:
        List of DominantColor sorted by weight, heaviest first.
        Empty input gives an empty list.
    """
    if isinstance(k, bool) or not isinstance(k, (int, np.integer)) or k < 1:
        raise ValueError(f"k must be a positive integer, got {k!r}")
    if isinstance(max_iter, bool) or not isinstance(max_iter, (int, np.integer)) or max_iter < 1:
        raise ValueError(f"max_iter must be a positive integer, got {max_iter!r}")

    samples = filter_background(pixels, background, min_pixels)
    if len(samples) == 0:
        return []

    centroids, labels, _ = kmeans(samples, int(k), _make_rng(seed, rng), max_iter=max_iter)
    counts = np.bincount(labels, minlength=len(centroids))
    total = len(samples)

    colors = []
    for centroid, count in zip(centroids, counts):
        weight = count / total
        if weight > min_weight:
            rgb = tuple(int(c) for c in np.clip(centroid, 0, 255))
            colors.append(DominantColor(rgb=rgb, weight=float(weight), count=int(count)))

    colors.sort(key=lambda c: c.weight, reverse=True)
    return colors
