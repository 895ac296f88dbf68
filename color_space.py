#!/usr/bin/env python3
"""
Color space conversion: sRGB bytes <-> XYZ <-> CIE L*a*b* (D65).

Every function accepts a single triple or an (N, 3) array and returns the
same shape it was given.
"""

import re

import numpy as np


# D65 reference white
XN, YN, ZN = 0.95047, 1.0, 1.08883

# sRGB -> XYZ
RGB_TO_XYZ = np.array([
    [0.4124564, 0.3575761, 0.1804375],
    [0.2126729, 0.7151522, 0.0721750],
    [0.0193339, 0.1191920, 0.9503041],
])

# XYZ -> sRGB (inverse of the above)
XYZ_TO_RGB = np.array([
    [3.2404542, -1.5371385, -0.4985314],
    [-0.9692660, 1.8760108, 0.0415560],
    [0.0556434, -0.2040259, 1.0572252],
])

GAMMA_BREAKPOINT = 0.04045
LAB_EPSILON = 0.008856
LAB_SLOPE = 7.787

_HEX_RE = re.compile(r'^#?([0-9a-fA-F]{6})$')


def _as_triples(values, name: str) -> tuple[np.ndarray, bool]:
    """Return values as a float (N, 3) array and whether the input was a single triple."""
    arr = np.asarray(values, dtype=np.float64)
    single = arr.ndim == 1
    arr = np.atleast_2d(arr)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValueError(f"{name} must be a triple or an (N, 3) array, got shape {np.shape(values)}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} contains non-finite values")
    return arr, single


def rgb_to_xyz(rgb) -> np.ndarray:
    """Convert sRGB (0-255) to XYZ, normalized so that white has Y = 1."""
    arr, single = _as_triples(rgb, 'rgb')
    rgb_norm = np.clip(arr, 0, 255) / 255.0

    # Inverse gamma
    mask = rgb_norm > GAMMA_BREAKPOINT
    rgb_linear = np.where(mask, ((rgb_norm + 0.055) / 1.055) ** 2.4, rgb_norm / 12.92)

    xyz = rgb_linear @ RGB_TO_XYZ.T
    return xyz[0] if single else xyz


def xyz_to_lab(xyz) -> np.ndarray:
    """Convert XYZ to LAB against the D65 white point."""
    arr, single = _as_triples(xyz, 'xyz')
    x = arr[:, 0] / XN
    y = arr[:, 1] / YN
    z = arr[:, 2] / ZN

    def f(t):
        # cbrt keeps the (unused) negative branch finite
        return np.where(t > LAB_EPSILON, np.cbrt(t), LAB_SLOPE * t + 16 / 116)

    fx, fy, fz = f(x), f(y), f(z)

    L = 116 * fy - 16
    a = 500 * (fx - fy)
    b = 200 * (fy - fz)

    lab = np.column_stack([L, a, b])
    return lab[0] if single else lab


def rgb_to_lab(rgb) -> np.ndarray:
    """Convert RGB (0-255) to LAB color space."""
    return xyz_to_lab(rgb_to_xyz(rgb))


def lab_to_rgb(lab) -> np.ndarray:
    """Convert LAB to RGB (0-255), clipped to the sRGB gamut."""
    arr, single = _as_triples(lab, 'lab')
    L, a, b = arr[:, 0], arr[:, 1], arr[:, 2]

    fy = (L + 16) / 116
    fx = a / 500 + fy
    fz = fy - b / 200

    def f_inv(t):
        return np.where(t ** 3 > LAB_EPSILON, t ** 3, (t - 16 / 116) / LAB_SLOPE)

    xyz = np.column_stack([f_inv(fx) * XN, f_inv(fy) * YN, f_inv(fz) * ZN])
    rgb_linear = xyz @ XYZ_TO_RGB.T

    mask = rgb_linear > 0.0031308
    rgb = np.where(mask, 1.055 * np.power(np.clip(rgb_linear, 0, None), 1 / 2.4) - 0.055, 12.92 * rgb_linear)

    out = np.clip(np.round(rgb * 255), 0, 255).astype(np.uint8)
    return out[0] if single else out


def hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    """
    Parse a 6-digit hex color ('#C81E1E' or 'c81e1e').

    Raises:
        ValueError: If the string is not exactly six hex digits (plus optional '#')
    """
    match = _HEX_RE.match(hex_color.strip()) if isinstance(hex_color, str) else None
    if match is None:
        raise ValueError(f"Invalid hex color: {hex_color!r}")
    digits = match.group(1)
    return (int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))


def rgb_to_hex(rgb) -> str:
    """Format an RGB triple as '#rrggbb'."""
    r, g, b = (int(np.clip(round(float(c)), 0, 255)) for c in rgb)
    return f"#{r:02x}{g:02x}{b:02x}"


def lab_to_hex(lab) -> str:
    """Convert a single LAB color to a hex string."""
    return rgb_to_hex(lab_to_rgb(np.asarray(lab, dtype=np.float64).reshape(3)))
