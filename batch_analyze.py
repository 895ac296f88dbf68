#!/usr/bin/env python3
"""Batch match images against a palette and generate HTML reports."""

import argparse
import sys
import time
from concurrent.futures import ProcessPoolExecutor, wait, FIRST_COMPLETED
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np

from analyze import (
    AnalysisResult, add_analysis_arguments, policy_from_args,
    render_html, run_pipeline,
)
from dominant_colors import DEFAULT_K, SAMPLE_STEP
from palette import Palette, load_palette
from palette_match import AUTO_MATCH, MatchPolicy


@dataclass
class BatchItem:
    """Outcome for one image in a batch."""
    image_path: Path
    result: Optional[AnalysisResult] = None
    error: Optional[str] = None
    elapsed: float = 0.0
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.result is not None


def find_images(directory: Path) -> list[Path]:
    """Find all image files in directory."""
    extensions = {'.jpg', '.jpeg', '.png', '.webp'}
    return sorted(p for p in directory.iterdir()
                  if p.is_file() and p.suffix.lower() in extensions)


def derive_seeds(seed: Optional[int], count: int) -> list[Optional[int]]:
    """One independent seed per image, reproducible from a single base seed."""
    if seed is None:
        return [None] * count
    children = np.random.SeedSequence(seed).spawn(count)
    return [int(child.generate_state(1)[0]) for child in children]


def analyze_one(image_path: Path, palette: Palette, k: int, seed: Optional[int],
                step: int, policy: MatchPolicy) -> BatchItem:
    """Analyze a single image. Kept pickle-friendly for ProcessPoolExecutor."""
    start = time.perf_counter()
    try:
        result = run_pipeline(str(image_path), palette, k=k, seed=seed, step=step, policy=policy)
    except Exception as e:
        return BatchItem(image_path, error=f"{type(e).__name__}: {e}",
                         elapsed=time.perf_counter() - start)
    return BatchItem(image_path, result=result, elapsed=time.perf_counter() - start)


def run_batch(images: list[Path], palette: Palette, k: int = DEFAULT_K,
              seed: Optional[int] = None, step: int = SAMPLE_STEP,
              policy: MatchPolicy = AUTO_MATCH, workers: int = 1,
              time_budget: Optional[float] = None) -> list[BatchItem]:
    """
    Analyze a list of images, optionally in a process pool.

    Args:
        images: Image paths
        palette: Reference palette, shared read-only by all tasks
        workers: Worker processes; 1 runs everything in this process
        time_budget: Wall-clock seconds for the whole batch. Images that have
                     not finished when it runs out are marked timed_out.
                     Worker processes already running an image are
                     left to finish it in the background.

    Returns:
        One BatchItem per image, in input order
    """
    seeds = derive_seeds(seed, len(images))
    deadline = None if time_budget is None else time.perf_counter() + time_budget
    items: dict[int, BatchItem] = {}

    if workers <= 1:
        for i, (image_path, image_seed) in enumerate(zip(images, seeds)):
            if deadline is not None and time.perf_counter() >= deadline:
                items[i] = BatchItem(image_path, error="time budget exhausted", timed_out=True)
                continue
            items[i] = analyze_one(image_path, palette, k, image_seed, step, policy)
        return [items[i] for i in range(len(images))]

    executor = ProcessPoolExecutor(max_workers=workers)
    try:
        pending = {
            executor.submit(analyze_one, image_path, palette, k, image_seed, step, policy): i
            for i, (image_path, image_seed) in enumerate(zip(images, seeds))
        }
        while pending:
            timeout = None if deadline is None else max(0.0, deadline - time.perf_counter())
            done, _ = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)
            if not done:
                break
            for future in done:
                items[pending.pop(future)] = future.result()

        for future, i in pending.items():
            future.cancel()
            items[i] = BatchItem(images[i], error="time budget exhausted", timed_out=True)
    finally:
        # Running tasks cannot be interrupted; don't wait for them past the budget
        executor.shutdown(wait=deadline is None, cancel_futures=True)

    return [items[i] for i in range(len(images))]


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Batch match images against a palette and generate HTML reports.'
    )
    parser.add_argument(
        '--input', '-i',
        required=True,
        help='Directory containing images to analyze'
    )
    parser.add_argument(
        '--output', '-o',
        required=True,
        help='Directory for HTML output files'
    )
    parser.add_argument(
        '--workers', '-j',
        type=int,
        default=1,
        help='Number of worker processes (default 1)'
    )
    parser.add_argument(
        '--time-budget',
        type=float,
        default=None,
        help=('Stop after this many seconds; unfinished images are reported as timed out. '
              'Images already running in a worker are not interrupted, so the process '
              'exits once they finish')
    )
    add_analysis_arguments(parser)

    args = parser.parse_args(argv)

    input_dir = Path(args.input)
    output_dir = Path(args.output)

    # Validate input directory
    if not input_dir.is_dir():
        print(f"Error: Input directory not found: {input_dir}", file=sys.stderr)
        sys.exit(2)

    try:
        palette = load_palette(args.palette, format=args.palette_format)
        policy = policy_from_args(args)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if len(palette) == 0:
        print(f"Error: No reference colors in {args.palette}", file=sys.stderr)
        sys.exit(2)
    if palette.duplicates_skipped or palette.invalid_skipped:
        print(f"  Warning: skipped {palette.duplicates_skipped} duplicate and "
              f"{palette.invalid_skipped} hexless palette records", file=sys.stderr)

    # Create output directory if needed
    output_dir.mkdir(parents=True, exist_ok=True)

    # Find images
    images = find_images(input_dir)
    if not images:
        print(f"No images found in {input_dir}", file=sys.stderr)
        sys.exit(2)

    total = len(images)
    print(f"Matching {total} images against {len(palette)} reference colors ({policy.metric})")

    batch_start = time.perf_counter()
    items = run_batch(images, palette, k=args.k, seed=args.seed, step=args.step,
                      policy=policy, workers=args.workers, time_budget=args.time_budget)
    batch_elapsed = time.perf_counter() - batch_start

    succeeded = 0
    failed = []
    for i, item in enumerate(items, 1):
        name = item.image_path.name
        if not item.ok:
            print(f"[{i}/{total}] {name} → ERROR: {item.error}", file=sys.stderr)
            failed.append((name, item.error))
            continue

        output_file = output_dir / f"{item.image_path.stem}-pantone.html"
        if output_file.exists():
            print(f"  Warning: Overwriting {output_file.name}", file=sys.stderr)
        output_file.write_text(render_html(item.result))

        codes = ', '.join(m.reference.code for m in item.result.matches) or 'no matches'
        print(f"[{i}/{total}] {name} → {codes} ({item.elapsed:.2f}s)")
        succeeded += 1

    # Summary
    print()
    print(f"Completed: {succeeded}/{total} succeeded in {batch_elapsed:.2f}s")
    if succeeded > 0:
        print(f"Average: {batch_elapsed / succeeded:.2f}s per image")
    if failed:
        print(f"Failed ({len(failed)}):")
        for name, error in failed:
            print(f"  - {name}: {error}")
        sys.exit(1)


if __name__ == '__main__':
    main()
