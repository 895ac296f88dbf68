#!/usr/bin/env python3
"""Profile the matching pipeline to identify performance bottlenecks."""

import argparse
import cProfile
import pstats
import io
import sys
import time
from pathlib import Path

from analyze import AnalysisResult, load_image, render
from batch_analyze import find_images
from dominant_colors import DEFAULT_K, SAMPLE_STEP, extract_dominant_colors, sample_pixels
from palette import Palette, load_palette
from palette_match import AUTO_MATCH, match_with_policy


def profile_image(image_path: str, palette: Palette, k: int = DEFAULT_K,
                  seed: int = 0, verbose: bool = True) -> tuple[dict, AnalysisResult]:
    """Time each pipeline stage for a single image."""

    if verbose:
        print(f"\n{'='*60}")
        print(f"Profiling: {Path(image_path).name}")
        print(f"{'='*60}")

    timings = {}

    start = time.perf_counter()
    image = load_image(image_path)
    timings['load_image'] = time.perf_counter() - start

    start = time.perf_counter()
    samples = sample_pixels(image, step=SAMPLE_STEP)
    timings['sample'] = time.perf_counter() - start

    if verbose:
        print(f"  Image: {image.shape[1]}x{image.shape[0]}")
        print(f"  Samples: {len(samples):,}")

    start = time.perf_counter()
    dominant = extract_dominant_colors(samples, k=k, seed=seed)
    timings['extract'] = time.perf_counter() - start

    start = time.perf_counter()
    matches = match_with_policy(dominant, palette, AUTO_MATCH)
    timings['match'] = time.perf_counter() - start

    result = AnalysisResult(
        source=str(image_path),
        image_shape=image.shape[:2],
        sample_count=len(samples),
        dominant_colors=dominant,
        matches=matches,
        policy=AUTO_MATCH,
        seed=seed,
    )

    start = time.perf_counter()
    render(result)
    timings['render'] = time.perf_counter() - start

    total = sum(timings.values())
    timings['total'] = total

    if verbose:
        print(f"  Dominant colors: {len(dominant)}")
        print(f"  Matches: {len(matches)}")
        print(f"\nStage timings:")
        for stage, t in timings.items():
            pct = (t / total * 100) if stage != 'total' and total > 0 else 100
            print(f"  {stage:20s}: {t:6.3f}s ({pct:5.1f}%)")

    return timings, result


def detailed_profile(image_path: str, k: int = DEFAULT_K, seed: int = 0) -> str:
    """Run cProfile on extract_dominant_colors (the main compute stage)."""

    print(f"\n{'='*60}")
    print(f"Detailed profile of extract_dominant_colors()")
    print(f"{'='*60}")

    # Sample first (outside profiling)
    samples = sample_pixels(load_image(image_path))

    profiler = cProfile.Profile()
    profiler.enable()
    extract_dominant_colors(samples, k=k, seed=seed)
    profiler.disable()

    stream = io.StringIO()
    stats = pstats.Stats(profiler, stream=stream)
    stats.sort_stats('cumulative')
    stats.print_stats(30)  # Top 30 functions

    report = stream.getvalue()
    print(report)
    return report


def main(argv=None):
    parser = argparse.ArgumentParser(description='Profile the matching pipeline.')
    parser.add_argument('--input', '-i', required=True, help='Directory of images')
    parser.add_argument('--palette', '-p', required=True, help='JSON palette file')
    args = parser.parse_args(argv)

    images = find_images(Path(args.input))
    if not images:
        print(f"No images found in {args.input}")
        sys.exit(1)

    palette = load_palette(args.palette)
    print(f"Found {len(images)} test images, {len(palette)} reference colors")

    all_timings = []
    for img in images:
        timings, result = profile_image(str(img), palette)
        all_timings.append((img.name, timings, result.sample_count))

    # Summary
    print(f"\n{'='*60}")
    print("SUMMARY")
    print(f"{'='*60}")
    print(f"{'Image':<35} {'Samples':>8} {'Extract':>8} {'Total':>8}")
    print("-" * 62)
    for name, timings, samples in all_timings:
        print(f"{name:<35} {samples:>8,} {timings['extract']:>7.3f}s {timings['total']:>7.3f}s")

    # Detailed profile on first image
    detailed_profile(str(images[0]))


if __name__ == "__main__":
    main()
