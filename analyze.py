#!/usr/bin/env python3
"""
Pantone matching pipeline.

Finds the dominant colors of a product photo and matches them to the closest
chips of a reference palette.
Four stages: Load → Sample → Extract → Match, then render as text or HTML.
"""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np
from PIL import Image

from color_space import rgb_to_hex, rgb_to_lab
from dominant_colors import (
    DEFAULT_K, SAMPLE_STEP, BackgroundFilter,
    extract_dominant_colors, sample_pixels,
)
from palette import PALETTE_FORMATS, Palette, load_palette
from palette_match import AUTO_MATCH, POLICIES, MatchPolicy, match_with_policy


# =============================================================================
# Constants
# =============================================================================

# Image size limits (security: prevent decompression bombs)
MAX_IMAGE_PIXELS = 50_000_000  # 50 megapixels
MAX_IMAGE_DIMENSION = 10_000  # 10k pixels per side


# =============================================================================
# Stage 1: Load
# =============================================================================

def load_image(image_path: str) -> np.ndarray:
    """
    Load an image as an (height, width, 3) uint8 RGB array.

    Raises:
        FileNotFoundError: If image file doesn't exist
        ValueError: If file is not a valid image or exceeds size limits
    """
    try:
        img = Image.open(image_path)
    except FileNotFoundError:
        raise FileNotFoundError(f"Image not found: {image_path}")
    except Exception as e:
        raise ValueError(f"Could not open image: {e}")

    with img:
        width, height = img.size
        if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
            raise ValueError(
                f"Image dimensions {width}x{height} exceed maximum "
                f"{MAX_IMAGE_DIMENSION}x{MAX_IMAGE_DIMENSION}"
            )
        if width * height > MAX_IMAGE_PIXELS:
            raise ValueError(
                f"Image has {width * height:,} pixels, exceeding maximum {MAX_IMAGE_PIXELS:,}"
            )
        return np.array(img.convert('RGB'))


# =============================================================================
# Stages 2-4: Sample, Extract, Match
# =============================================================================

@dataclass
class AnalysisResult:
    """Everything produced for one image."""
    source: str  # Image path, or a label for in-memory images
    image_shape: tuple  # (height, width)
    sample_count: int
    dominant_colors: list  # DominantColor, heaviest first
    matches: list  # Match, in claim order
    policy: MatchPolicy
    seed: Optional[int] = None
    warnings: list = field(default_factory=list)

    @property
    def metric(self) -> str:
        return self.policy.metric


def analyze_pixels(image: np.ndarray, palette: Palette, k: int = DEFAULT_K,
                   seed: Optional[int] = None, step: int = SAMPLE_STEP,
                   policy: MatchPolicy = AUTO_MATCH,
                   background: Optional[BackgroundFilter] = None,
                   source: str = '<array>') -> AnalysisResult:
    """Run sampling, extraction and matching on a decoded image."""
    samples = sample_pixels(image, step=step)
    dominant = extract_dominant_colors(samples, k=k, seed=seed, background=background)
    matches = match_with_policy(dominant, palette, policy)

    warnings = []
    if len(palette) == 0:
        warnings.append("No reference colors available")
    elif dominant and not matches:
        warnings.append("No matches within the distance threshold")

    return AnalysisResult(
        source=source,
        image_shape=tuple(np.shape(image)[:2]),
        sample_count=len(samples),
        dominant_colors=dominant,
        matches=matches,
        policy=policy,
        seed=seed,
        warnings=warnings,
    )


def run_pipeline(image_path: str, palette: Palette, **kwargs) -> AnalysisResult:
    """Load an image from disk and analyze it. See analyze_pixels() for options."""
    image = load_image(image_path)
    return analyze_pixels(image, palette, source=str(image_path), **kwargs)


# =============================================================================
# Render
# =============================================================================

def format_lab(rgb) -> str:
    lab = rgb_to_lab(rgb)
    return f"LAB({lab[0]:.0f}, {lab[1]:.0f}, {lab[2]:.0f})"


def render(result: AnalysisResult) -> str:
    """Render an analysis result as plain text."""
    lines = []

    h, w = result.image_shape
    lines.append(f"IMAGE: {result.source} ({w}x{h}, {result.sample_count:,} samples)")
    lines.append(f"Metric: {result.metric} | Colors considered: {result.policy.max_colors} | "
                 f"Matches per color: {result.policy.matches_per_color}")
    if result.policy.max_distance is not None:
        lines.append(f"Max distance: {result.policy.max_distance:g}")
    lines.append("")

    lines.append("DOMINANT COLORS:")
    lines.append("")
    if not result.dominant_colors:
        lines.append("  (none)")
    for i, color in enumerate(result.dominant_colors, 1):
        lines.append(f"  {i}. {color.hex} / RGB{color.rgb} / {format_lab(color.rgb)} "
                     f"| Weight: {color.weight * 100:.0f}%")
    lines.append("")

    lines.append("MATCHES:")
    lines.append("")
    if not result.matches:
        lines.append("  (none)")
    for match in result.matches:
        ref = match.reference
        weight = f"{match.weight * 100:.0f}%" if match.weight is not None else "-"
        lines.append(f"  {ref.code} ({ref.name}) {ref.hex} | ΔE={match.distance:.1f} | Weight: {weight}")
        if match.source_rgb is not None:
            lines.append(f"    from {rgb_to_hex(match.source_rgb)}")

    for warning in result.warnings:
        lines.append("")
        lines.append(f"Warning: {warning}")

    return "\n".join(lines)


def text_color_for_background(rgb) -> str:
    """Return black or white text color based on background lightness."""
    return "#000" if rgb_to_lab(rgb)[0] > 50 else "#fff"


def render_html(result: AnalysisResult) -> str:
    """Render an analysis result as a standalone HTML page."""
    from html import escape

    safe_source = escape(result.source)

    css = """
        * { box-sizing: border-box; margin: 0; padding: 0; }
        body {
            font-family: system-ui, -apple-system, sans-serif;
            background: #f5f5f5;
            color: #333;
            line-height: 1.5;
            padding: 2rem;
            max-width: 900px;
            margin: 0 auto;
        }
        h1 { font-size: 1.5rem; margin-bottom: 0.5rem; }
        h2 { font-size: 1.2rem; margin: 2rem 0 1rem; border-bottom: 1px solid #ddd; padding-bottom: 0.5rem; }
        .meta { color: #666; font-size: 0.9rem; margin-bottom: 1rem; }
        .palette-strip {
            display: flex;
            height: 80px;
            border-radius: 8px;
            overflow: hidden;
            box-shadow: 0 2px 8px rgba(0,0,0,0.1);
            margin: 1.5rem 0;
        }
        .palette-strip .swatch {
            display: flex;
            align-items: flex-end;
            justify-content: center;
            padding: 0.5rem;
            font-size: 0.7rem;
            font-weight: 500;
        }
        .match-card {
            background: #fff;
            border-radius: 8px;
            padding: 1rem;
            margin-bottom: 1rem;
            box-shadow: 0 1px 3px rgba(0,0,0,0.08);
            display: grid;
            grid-template-columns: 60px 60px 1fr;
            gap: 1rem;
            align-items: center;
        }
        .match-card .swatch {
            width: 60px;
            height: 60px;
            border-radius: 6px;
            display: flex;
            align-items: center;
            justify-content: center;
            font-size: 0.65rem;
            font-weight: 600;
        }
        .match-card .info { font-size: 0.85rem; }
        .match-card .code { font-weight: 600; }
        .match-card .values { font-family: monospace; color: #555; font-size: 0.8rem; }
        .warning { color: #a15c00; margin-top: 1rem; }
    """

    lines = []
    lines.append('<!DOCTYPE html>')
    lines.append('<html lang="en">')
    lines.append('<head>')
    lines.append('<meta charset="utf-8">')
    lines.append(f'<title>Pantone matches: {safe_source}</title>')
    lines.append(f'<style>{css}</style>')
    lines.append('</head>')
    lines.append('<body>')

    h, w = result.image_shape
    lines.append(f'<h1>{safe_source}</h1>')
    lines.append(f'<p class="meta">{w}x{h} · {result.sample_count:,} samples · '
                 f'{escape(result.metric)}</p>')

    # Dominant colors as a proportional strip
    lines.append('<h2>Dominant Colors</h2>')
    if result.dominant_colors:
        lines.append('<div class="palette-strip">')
        for color in result.dominant_colors:
            fg = text_color_for_background(color.rgb)
            lines.append(f'  <div class="swatch" style="background:{color.hex}; color:{fg}; '
                         f'flex:{color.weight:.4f}">{color.weight * 100:.0f}%</div>')
        lines.append('</div>')
    else:
        lines.append('<p>No dominant colors found.</p>')

    lines.append('<h2>Matches</h2>')
    if not result.matches:
        lines.append('<p>No matches.</p>')
    for match in result.matches:
        ref = match.reference
        source_hex = rgb_to_hex(match.source_rgb) if match.source_rgb is not None else '#888'
        weight = f"{match.weight * 100:.0f}%" if match.weight is not None else "-"
        lines.append('<div class="match-card">')
        lines.append(f'  <div class="swatch" style="background:{source_hex}; '
                     f'color:{text_color_for_background(match.source_rgb or (136, 136, 136))}">{weight}</div>')
        lines.append(f'  <div class="swatch" style="background:{escape(ref.hex)}"></div>')
        lines.append('  <div class="info">')
        lines.append(f'    <div class="code">{escape(ref.code)}</div>')
        lines.append(f'    <div>{escape(ref.name)}</div>')
        lines.append(f'    <div class="values">{escape(ref.hex)} · ΔE {match.distance:.1f} · from {source_hex}</div>')
        lines.append('  </div>')
        lines.append('</div>')

    for warning in result.warnings:
        lines.append(f'<p class="warning">{escape(warning)}</p>')

    lines.append('</body>')
    lines.append('</html>')

    return '\n'.join(lines)


# =============================================================================
# CLI
# =============================================================================

def build_policy(policy_name: str = 'auto', metric: Optional[str] = None,
                 max_distance: Optional[float] = None,
                 max_colors: Optional[int] = None,
                 matches_per_color: Optional[int] = None) -> MatchPolicy:
    """Start from a named policy and apply any overrides."""
    try:
        base = POLICIES[policy_name]
    except KeyError:
        raise ValueError(f"Unknown policy {policy_name!r}; expected one of {sorted(POLICIES)}") from None

    return MatchPolicy(
        max_colors=base.max_colors if max_colors is None else max_colors,
        matches_per_color=base.matches_per_color if matches_per_color is None else matches_per_color,
        metric=base.metric if metric is None else metric,
        max_distance=base.max_distance if max_distance is None else max_distance,
    )


def add_analysis_arguments(parser) -> None:
    """Options shared by the single-image and batch CLIs."""
    parser.add_argument(
        '--palette', '-p',
        required=True,
        help='JSON file with the reference palette'
    )
    parser.add_argument(
        '--palette-format',
        choices=PALETTE_FORMATS,
        default='auto',
        help='Palette record format: auto (code/name/hex or seed records) or coated export'
    )
    parser.add_argument(
        '-k',
        type=int,
        default=DEFAULT_K,
        help=f'Number of color clusters (default {DEFAULT_K})'
    )
    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Random seed for reproducible clustering'
    )
    parser.add_argument(
        '--step',
        type=int,
        default=SAMPLE_STEP,
        help=f'Sample every Nth pixel in each dimension (default {SAMPLE_STEP})'
    )
    parser.add_argument(
        '--policy',
        choices=sorted(POLICIES),
        default='auto',
        help='auto: top 3 colors, 1 chip each (CIEDE2000); bulk: top 5, 2 chips each (CIE76)'
    )
    parser.add_argument(
        '--metric',
        choices=['cie76', 'ciede2000'],
        default=None,
        help='Override the policy distance metric'
    )
    parser.add_argument(
        '--max-distance',
        type=float,
        default=None,
        help='Only accept matches closer than this'
    )
    parser.add_argument(
        '--colors',
        type=int,
        default=None,
        help='Override how many dominant colors are matched'
    )
    parser.add_argument(
        '--per-color',
        type=int,
        default=None,
        help='Override how many chips are taken per dominant color'
    )


def policy_from_args(args) -> MatchPolicy:
    return build_policy(args.policy, metric=args.metric, max_distance=args.max_distance,
                        max_colors=args.colors, matches_per_color=args.per_color)


def main(argv=None):
    import argparse
    import sys
    from pathlib import Path

    parser = argparse.ArgumentParser(
        description='Find the dominant colors of an image and match them to a palette.'
    )
    parser.add_argument(
        '--input', '-i',
        required=True,
        help='Path to the image file'
    )
    parser.add_argument(
        '--output', '-o',
        nargs='?',
        const=True,
        default=None,
        help='Write HTML report. Optionally specify path, otherwise auto-names from input.'
    )
    parser.add_argument(
        '--swatch',
        default=None,
        help='Write a PNG swatch sheet to this path'
    )
    parser.add_argument(
        '--plot',
        default=None,
        help='Write an a*b* plane scatter plot to this path'
    )
    add_analysis_arguments(parser)

    args = parser.parse_args(argv)
    image_path = Path(args.input)

    try:
        palette = load_palette(args.palette, format=args.palette_format)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except ValueError as e:
        print(f"Error loading palette: {e}", file=sys.stderr)
        sys.exit(1)

    if palette.duplicates_skipped:
        print(f"  Warning: skipped {palette.duplicates_skipped} duplicate palette codes", file=sys.stderr)
    if palette.invalid_skipped:
        print(f"  Warning: skipped {palette.invalid_skipped} palette records without a hex color", file=sys.stderr)

    try:
        result = run_pipeline(str(image_path), palette, k=args.k, seed=args.seed,
                              step=args.step, policy=policy_from_args(args))
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except Exception as e:
        print(f"Error analyzing image: {e}", file=sys.stderr)
        sys.exit(1)

    # Always print prose to terminal
    print(render(result))

    try:
        if args.output:
            if args.output is True:
                output_path = image_path.with_name(f"{image_path.stem}-pantone.html")
            else:
                output_path = Path(args.output)
            output_path.write_text(render_html(result))
            print(f"\nWrote: {output_path}")

        if args.swatch:
            from visualize import render_swatches
            render_swatches(result, args.swatch)

        if args.plot:
            from visualize import plot_ab_plane
            plot_ab_plane(result, palette, args.plot)
    except OSError as e:
        print(f"Error writing output: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
