#!/usr/bin/env python3
"""
Reference palettes (Pantone chips and the like).

A Palette converts its chips to LAB once, when it is built, and keeps the
result read-only so it can be shared between threads and worker processes.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

import numpy as np

from color_space import hex_to_rgb, rgb_to_lab


PALETTE_FORMATS = ('auto', 'coated')


@dataclass(frozen=True)
class ReferenceColor:
    """A named reference chip."""
    id: str
    code: str
    name: str
    hex: str

    @property
    def rgb(self) -> tuple[int, int, int]:
        return hex_to_rgb(self.hex)


def _is_coated(code: str) -> bool:
    upper = code.upper()
    return upper.endswith(' C') or upper.endswith('-C')


def _from_seed_record(record: dict) -> ReferenceColor:
    """Build a chip from the seed file format: {"pantone": "yellow-012-c", "hex": "#ffd700"}."""
    pantone = str(record['pantone'])
    code = pantone.upper()
    name = pantone
    if name.lower().endswith('-c'):
        name = name[:-2]
    name = name.replace('-', ' ')
    if 'hex' not in record:
        raise ValueError(f"Palette record needs 'hex': {record!r}")
    return ReferenceColor(id=code, code=code, name=name, hex=record['hex'])


def _from_record(record: dict) -> ReferenceColor:
    if not isinstance(record, dict):
        raise ValueError(f"Palette record must be an object: {record!r}")
    if 'pantone' in record:
        return _from_seed_record(record)
    hex_color = record.get('hex', record.get('hexColor'))
    if hex_color is None or 'code' not in record:
        raise ValueError(f"Palette record needs 'code' and 'hex': {record!r}")
    code = str(record['code'])
    return ReferenceColor(
        id=str(record.get('id', code)),
        code=code,
        name=str(record.get('name', code)),
        hex=hex_color,
    )


def _from_coated_record(record: dict) -> Optional[ReferenceColor]:
    """
    Build a chip from the coated export: {"pantone": "100-c", "hex": "f6eb61"}.

    The code becomes "PANTONE 100 C" and doubles as the name. Returns None
    when the hex is missing or not a string.
    """
    if not isinstance(record, dict) or 'pantone' not in record:
        raise ValueError(f"Coated palette record needs 'pantone': {record!r}")
    hex_color = record.get('hex')
    if not hex_color or not isinstance(hex_color, str):
        return None
    number = str(record['pantone']).replace('-c', '', 1).upper()
    code = f"PANTONE {number} C"
    if not hex_color.startswith('#'):
        hex_color = '#' + hex_color
    return ReferenceColor(id=code, code=code, name=code, hex=hex_color)


class Palette:
    """An ordered, immutable set of reference colors with cached LAB values."""

    def __init__(self, colors: Iterable[ReferenceColor] = ()):
        self.colors = tuple(colors)
        self.duplicates_skipped = 0
        self.invalid_skipped = 0
        self._by_code = {c.code: c for c in self.colors}

        if self.colors:
            rgb = np.array([c.rgb for c in self.colors], dtype=np.float64)
            lab = rgb_to_lab(rgb)
        else:
            lab = np.empty((0, 3), dtype=np.float64)
        lab.setflags(write=False)
        self._lab = lab

    @property
    def lab(self) -> np.ndarray:
        """(N, 3) LAB values, one row per chip, read-only."""
        return self._lab

    @classmethod
    def from_records(cls, records: Iterable[dict], format: str = 'auto') -> 'Palette':
        """
        Build a palette from dicts.

        With format='auto', accepts either {"id", "code", "name", "hex"}
        records or the seed file format {"pantone", "hex"}. With
        format='coated', records are the coated export {"pantone": "100-c",
        "hex": "f6eb61"}; entries without a usable hex are counted in
        invalid_skipped instead of raising. Later records repeating an
        earlier code are skipped.

        Raises:
            ValueError: If a record is missing fields or has a bad hex color,
                        or the format is unknown
        """
        if format not in PALETTE_FORMATS:
            raise ValueError(f"Unknown palette format {format!r}, expected one of {PALETTE_FORMATS}")
        parse = _from_coated_record if format == 'coated' else _from_record

        colors = []
        seen = set()
        skipped = 0
        invalid = 0
        for record in records:
            color = parse(record)
            if color is None:
                invalid += 1
                continue
            if color.code in seen:
                skipped += 1
                continue
            seen.add(color.code)
            colors.append(color)

        palette = cls(colors)
        palette.duplicates_skipped = skipped
        palette.invalid_skipped = invalid
        return palette

    def get(self, code: str) -> Optional[ReferenceColor]:
        return self._by_code.get(code)

    def search(self, query: str = '') -> list[ReferenceColor]:
        """Chips whose code or name contains the query, coated chips first."""
        q = query.lower()
        hits = [c for c in self.colors if q in c.code.lower() or q in c.name.lower()]
        hits.sort(key=lambda c: (not _is_coated(c.code), c.code))
        return hits

    def __len__(self) -> int:
        return len(self.colors)

    def __iter__(self):
        return iter(self.colors)

    def __getitem__(self, index: int) -> ReferenceColor:
        return self.colors[index]

    def __repr__(self) -> str:
        return f"Palette({len(self.colors)} colors)"


def load_palette(path, format: str = 'auto') -> Palette:
    """
    Load a palette from a JSON file holding a list of records.

    See Palette.from_records for the accepted formats.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file isn't a JSON list of valid records
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Palette not found: {path}")

    try:
        records = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ValueError(f"Could not parse palette {path}: {e}") from e

    if not isinstance(records, list):
        raise ValueError(f"Palette {path} must contain a JSON list")

    return Palette.from_records(records, format=format)
