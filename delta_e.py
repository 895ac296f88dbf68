#!/usr/bin/env python3
"""
Perceptual color difference in LAB space.

CIE76 is plain Euclidean distance. CIEDE2000 corrects its non-uniformities
(most visibly in the blues) and is what people mean by "Delta E" when
comparing physical color chips.

Both functions broadcast: two triples give a float, a triple against an
(N, 3) array gives an (N,) array.
"""

import numpy as np


DEFAULT_METRIC = 'ciede2000'

# kL = kC = kH = 1 (graphic arts weighting is not used)
K_L = K_C = K_H = 1.0

_POW25_7 = 25.0 ** 7


def _as_lab(lab, name: str) -> np.ndarray:
    arr = np.asarray(lab, dtype=np.float64)
    if arr.shape[-1:] != (3,):
        raise ValueError(f"{name} must have a trailing dimension of 3, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} contains non-finite values")
    return arr


def _result(value: np.ndarray):
    return float(value) if np.ndim(value) == 0 else value


def delta_e_76(lab1, lab2):
    """CIE76: Euclidean distance between two LAB colors."""
    lab1 = _as_lab(lab1, 'lab1')
    lab2 = _as_lab(lab2, 'lab2')
    return _result(np.sqrt(np.sum((lab1 - lab2) ** 2, axis=-1)))


def delta_e_2000(lab1, lab2):
    """
    CIEDE2000 color difference.

    Follows Sharma, Wu & Dalal (2005), including the zero-chroma branches for
    the hue difference and the mean hue.
    """
    lab1 = _as_lab(lab1, 'lab1')
    lab2 = _as_lab(lab2, 'lab2')
    L1, a1, b1 = lab1[..., 0], lab1[..., 1], lab1[..., 2]
    L2, a2, b2 = lab2[..., 0], lab2[..., 1], lab2[..., 2]

    C1 = np.sqrt(a1 ** 2 + b1 ** 2)
    C2 = np.sqrt(a2 ** 2 + b2 ** 2)
    C_bar = (C1 + C2) / 2

    # Asymmetry factor on a*
    G = 0.5 * (1 - np.sqrt(C_bar ** 7 / (C_bar ** 7 + _POW25_7)))
    a1p = a1 * (1 + G)
    a2p = a2 * (1 + G)

    C1p = np.sqrt(a1p ** 2 + b1 ** 2)
    C2p = np.sqrt(a2p ** 2 + b2 ** 2)

    h1p = np.degrees(np.arctan2(b1, a1p)) % 360
    h2p = np.degrees(np.arctan2(b2, a2p)) % 360

    dLp = L2 - L1
    dCp = C2p - C1p

    chroma_product = C1p * C2p
    zero_chroma = chroma_product == 0

    dh = h2p - h1p
    dhp = np.where(
        zero_chroma, 0.0,
        np.where(np.abs(dh) <= 180, dh,
                 np.where(dh > 180, dh - 360, dh + 360))
    )
    dHp = 2 * np.sqrt(chroma_product) * np.sin(np.radians(dhp / 2))

    Lp_bar = (L1 + L2) / 2
    Cp_bar = (C1p + C2p) / 2

    h_sum = h1p + h2p
    Hp_bar = np.where(
        zero_chroma, h_sum,
        np.where(np.abs(h1p - h2p) <= 180, h_sum / 2,
                 np.where(h_sum < 360, (h_sum + 360) / 2, (h_sum - 360) / 2))
    )

    T = (1
         - 0.17 * np.cos(np.radians(Hp_bar - 30))
         + 0.24 * np.cos(np.radians(2 * Hp_bar))
         + 0.32 * np.cos(np.radians(3 * Hp_bar + 6))
         - 0.20 * np.cos(np.radians(4 * Hp_bar - 63)))

    d_theta = 30 * np.exp(-((Hp_bar - 275) / 25) ** 2)
    R_C = 2 * np.sqrt(Cp_bar ** 7 / (Cp_bar ** 7 + _POW25_7))

    S_L = 1 + (0.015 * (Lp_bar - 50) ** 2) / np.sqrt(20 + (Lp_bar - 50) ** 2)
    S_C = 1 + 0.045 * Cp_bar
    S_H = 1 + 0.015 * Cp_bar * T

    R_T = -np.sin(np.radians(2 * d_theta)) * R_C

    l_term = dLp / (K_L * S_L)
    c_term = dCp / (K_C * S_C)
    h_term = dHp / (K_H * S_H)

    return _result(np.sqrt(l_term ** 2 + c_term ** 2 + h_term ** 2 + R_T * c_term * h_term))


METRICS = {
    'cie76': delta_e_76,
    'ciede2000': delta_e_2000,
}


def get_metric(name: str):
    """Look up a distance function by name ('cie76' or 'ciede2000')."""
    try:
        return METRICS[name.lower()]
    except (KeyError, AttributeError):
        raise ValueError(f"Unknown metric {name!r}; expected one of {sorted(METRICS)}") from None
