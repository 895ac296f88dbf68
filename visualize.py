#!/usr/bin/env python3
"""Swatch sheets and a*b* plots for analysis results."""

import numpy as np
from PIL import Image, ImageDraw

from color_space import hex_to_rgb, rgb_to_lab


def render_swatches(result, output_path: str) -> None:
    """
    Save a swatch sheet: one row per dominant color, with its matched chip.

    Args:
        result: AnalysisResult from analyze.run_pipeline()
        output_path: Path to save the PNG
    """
    swatch_size = 60
    padding = 10
    label_width = 220

    # Dominant color -> first chip claimed for it
    matched = {}
    for match in result.matches:
        if match.source_rgb is not None:
            matched.setdefault(tuple(match.source_rgb), match)

    rows = max(len(result.dominant_colors), 1)
    img_width = padding + 2 * (swatch_size + padding) + label_width
    img_height = rows * (swatch_size + padding) + padding

    img = Image.new('RGB', (img_width, img_height), (240, 240, 240))
    draw = ImageDraw.Draw(img)

    if not result.dominant_colors:
        draw.text((padding, padding), "No dominant colors", fill=(0, 0, 0))

    for row, color in enumerate(result.dominant_colors):
        y = padding + row * (swatch_size + padding)

        # Sampled color
        x = padding
        draw.rectangle([x, y, x + swatch_size, y + swatch_size], fill=tuple(color.rgb))

        # Matched chip, or an outline if the color went unmatched
        x += swatch_size + padding
        match = matched.get(tuple(color.rgb))
        if match is not None:
            draw.rectangle([x, y, x + swatch_size, y + swatch_size], fill=hex_to_rgb(match.reference.hex))
            label = f"{match.reference.code}  dE {match.distance:.1f}"
        else:
            draw.rectangle([x, y, x + swatch_size, y + swatch_size], outline=(160, 160, 160))
            label = "no match"

        x += swatch_size + padding
        draw.text((x, y + 10), f"{color.weight * 100:.1f}%  {color.hex}", fill=(0, 0, 0))
        draw.text((x, y + 30), label, fill=(80, 80, 80))

    img.save(output_path)
    print(f"Saved swatches to {output_path}")


def plot_ab_plane(result, palette, output_path: str) -> None:
    """
    Scatter the palette and the dominant colors in the a*b* plane.

    Palette chips are small dots; dominant colors are circles sized by weight,
    with a line to each chip they matched.
    """
    import matplotlib.pyplot as plt

    fig, ax = plt.subplots(figsize=(8, 8))

    if len(palette):
        chip_rgb = np.array([c.rgb for c in palette], dtype=np.float64) / 255.0
        ax.scatter(palette.lab[:, 1], palette.lab[:, 2], c=chip_rgb, s=12, alpha=0.6,
                   linewidths=0)

    for color in result.dominant_colors:
        lab = rgb_to_lab(color.rgb)
        ax.scatter(lab[1], lab[2], c=[np.array(color.rgb) / 255.0], s=color.weight * 2000 + 40,
                   edgecolors='black', linewidths=1.0)

    for match in result.matches:
        if match.source_rgb is None:
            continue
        src = rgb_to_lab(match.source_rgb)
        dst = rgb_to_lab(match.reference.rgb)
        ax.plot([src[1], dst[1]], [src[2], dst[2]], color='black', linewidth=0.8)
        ax.annotate(match.reference.code, (dst[1], dst[2]), fontsize=7,
                    xytext=(4, 4), textcoords='offset points')

    ax.axhline(0, color='#ccc', linewidth=0.5)
    ax.axvline(0, color='#ccc', linewidth=0.5)
    ax.set_xlabel('a*')
    ax.set_ylabel('b*')
    ax.set_title(f'Dominant colors vs palette ({result.metric})')
    ax.set_aspect('equal')

    plt.tight_layout()
    plt.savefig(output_path, dpi=150)
    plt.close(fig)
    print(f"Saved a*b* plot to {output_path}")
