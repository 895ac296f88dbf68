"""Tests for palette: reference chips, loading, search."""

import json

import numpy as np
import pytest

from color_space import rgb_to_lab
from palette import Palette, ReferenceColor, load_palette


def test_lab_is_cached_and_read_only():
    palette = Palette([
        ReferenceColor('1', 'RED', 'Red', '#C81E1E'),
        ReferenceColor('2', 'BLUE', 'Blue', '#1E1EC8'),
    ])
    assert palette.lab.shape == (2, 3)
    assert palette.lab[0] == pytest.approx(rgb_to_lab((200, 30, 30)))
    assert palette.lab is palette.lab
    with pytest.raises(ValueError):
        palette.lab[0, 0] = 1.0


def test_empty_palette():
    palette = Palette([])
    assert len(palette) == 0
    assert palette.lab.shape == (0, 3)


def test_reference_rgb():
    assert ReferenceColor('x', 'X', 'X', 'ffd700').rgb == (255, 215, 0)


def test_bad_hex_rejected():
    with pytest.raises(ValueError):
        Palette([ReferenceColor('x', 'X', 'X', '#12')])


def test_from_records_seed_format():
    palette = Palette.from_records([
        {'pantone': 'yellow-012-c', 'hex': '#ffd700'},
        {'pantone': 'process-blue-c', 'hex': '#0085ca'},
    ])
    first = palette[0]
    assert first.code == 'YELLOW-012-C'
    assert first.id == 'YELLOW-012-C'
    assert first.name == 'yellow 012'
    assert palette.get('PROCESS-BLUE-C').name == 'process blue'


def test_from_records_coated_format():
    palette = Palette.from_records([
        {'pantone': '100-c', 'hex': 'f6eb61'},
        {'pantone': 'warm-red-c', 'hex': '#f9423a'},
        {'pantone': '101-c', 'hex': None},
        {'pantone': '102-c'},
        {'pantone': '103-c', 'hex': 1234},
        {'pantone': '100-c', 'hex': '#000000'},
    ], format='coated')
    assert [c.code for c in palette] == ['PANTONE 100 C', 'PANTONE WARM-RED C']
    first = palette[0]
    assert first.id == first.name == first.code
    assert first.hex == '#f6eb61'
    assert palette[1].hex == '#f9423a'
    assert palette.invalid_skipped == 3
    assert palette.duplicates_skipped == 1


def test_coated_chips_sort_first_in_search():
    coated = Palette.from_records([{'pantone': '186-c', 'hex': 'c8102e'}], format='coated')
    palette = Palette(list(coated) + [ReferenceColor('u', '186 U', '186 U', '#c8102e')])
    assert [c.code for c in palette.search('186')] == ['PANTONE 186 C', '186 U']


def test_from_records_unknown_format():
    with pytest.raises(ValueError):
        Palette.from_records([], format='uncoated')


def test_load_palette_coated(tmp_path):
    path = tmp_path / 'pantone-coated.json'
    path.write_text(json.dumps([
        {'pantone': '186-c', 'hex': 'c8102e'},
        {'pantone': '187-c', 'hex': ''},
    ]))
    palette = load_palette(path, format='coated')
    assert [c.code for c in palette] == ['PANTONE 186 C']
    assert palette.invalid_skipped == 1


def test_from_records_full_format():
    palette = Palette.from_records([
        {'id': 'abc', 'code': '186 C', 'name': 'Red 186', 'hexColor': '#C8102E'},
    ])
    assert palette[0] == ReferenceColor('abc', '186 C', 'Red 186', '#C8102E')


def test_from_records_skips_duplicate_codes():
    palette = Palette.from_records([
        {'code': 'A', 'hex': '#000000'},
        {'code': 'B', 'hex': '#ffffff'},
        {'code': 'A', 'hex': '#ff0000'},
    ])
    assert [c.code for c in palette] == ['A', 'B']
    assert palette.get('A').hex == '#000000'
    assert palette.duplicates_skipped == 1


@pytest.mark.parametrize('record', [
    {'code': 'A'},
    {'hex': '#000000'},
    {'pantone': 'red-c'},
    {'code': 'A', 'hex': 'zzzzzz'},
    'not a record',
])
def test_from_records_rejects_bad_records(record):
    with pytest.raises(ValueError):
        Palette.from_records([record])


def test_search_coated_first():
    palette = Palette.from_records([
        {'code': '186 U', 'name': 'Red', 'hex': '#C8102E'},
        {'code': '186 C', 'name': 'Red', 'hex': '#C8102E'},
        {'code': '185 C', 'name': 'Red', 'hex': '#E4002B'},
        {'code': '300 C', 'name': 'Blue', 'hex': '#005EB8'},
    ])
    assert [c.code for c in palette.search('red')] == ['185 C', '186 C', '186 U']
    assert [c.code for c in palette.search('186')] == ['186 C', '186 U']
    assert len(palette.search()) == 4


def test_load_palette(tmp_path):
    path = tmp_path / 'palette.json'
    path.write_text(json.dumps([
        {'pantone': 'red-032-c', 'hex': '#ef3340'},
        {'pantone': 'black-c', 'hex': '#2d2926'},
    ]))
    palette = load_palette(path)
    assert len(palette) == 2
    assert palette.lab.shape == (2, 3)
    assert np.all(np.isfinite(palette.lab))


def test_load_palette_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_palette(tmp_path / 'nope.json')


def test_load_palette_bad_json(tmp_path):
    path = tmp_path / 'palette.json'
    path.write_text('{not json')
    with pytest.raises(ValueError):
        load_palette(path)


def test_load_palette_not_a_list(tmp_path):
    path = tmp_path / 'palette.json'
    path.write_text('{"code": "A", "hex": "#000000"}')
    with pytest.raises(ValueError):
        load_palette(path)
