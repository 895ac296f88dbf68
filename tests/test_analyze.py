"""Tests for the analyze pipeline, renderers and CLI."""

import json

import numpy as np
import pytest
from PIL import Image

import analyze
from analyze import (
    analyze_pixels, build_policy, load_image, render, render_html, run_pipeline,
)
from palette import Palette, ReferenceColor
from palette_match import AUTO_MATCH, BULK_MATCH


PALETTE_RECORDS = [
    {'code': 'RED', 'name': 'Red', 'hex': '#C81E1E'},
    {'code': 'BLUE', 'name': 'Blue', 'hex': '#1E1EC8'},
    {'code': 'GREEN', 'name': 'Green <b>', 'hex': '#1EC81E'},
]


@pytest.fixture
def palette():
    return Palette.from_records(PALETTE_RECORDS)


@pytest.fixture
def product_photo():
    """White backdrop with a red product and a smaller blue detail."""
    image = np.full((100, 100, 3), 255, dtype=np.uint8)
    image[20:80, 20:80] = (200, 30, 30)
    image[60:80, 20:50] = (30, 30, 200)
    return image


@pytest.fixture
def photo_file(tmp_path, product_photo):
    path = tmp_path / 'product.png'
    Image.fromarray(product_photo).save(path)
    return path


@pytest.fixture
def palette_file(tmp_path):
    path = tmp_path / 'palette.json'
    path.write_text(json.dumps(PALETTE_RECORDS))
    return path


def test_load_image(photo_file, product_photo):
    image = load_image(str(photo_file))
    assert image.shape == (100, 100, 3)
    assert image.dtype == np.uint8
    assert np.array_equal(image, product_photo)


def test_load_image_drops_alpha(tmp_path):
    path = tmp_path / 'rgba.png'
    Image.new('RGBA', (8, 6), (10, 20, 30, 128)).save(path)
    image = load_image(str(path))
    assert image.shape == (6, 8, 3)


def test_load_image_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_image(str(tmp_path / 'missing.png'))


def test_load_image_not_an_image(tmp_path):
    path = tmp_path / 'notes.png'
    path.write_text('definitely not a png')
    with pytest.raises(ValueError):
        load_image(str(path))


def test_load_image_too_large(tmp_path, monkeypatch):
    path = tmp_path / 'wide.png'
    Image.new('RGB', (50, 10)).save(path)
    monkeypatch.setattr(analyze, 'MAX_IMAGE_DIMENSION', 40)
    with pytest.raises(ValueError):
        load_image(str(path))


def test_analyze_pixels(product_photo, palette):
    result = analyze_pixels(product_photo, palette, seed=0)
    assert result.image_shape == (100, 100)
    assert result.sample_count == 400
    assert result.dominant_colors[0].rgb == (200, 30, 30)
    codes = [m.reference.code for m in result.matches]
    assert codes[:2] == ['RED', 'BLUE']
    assert result.matches[0].distance == pytest.approx(0.0, abs=1e-6)
    assert result.metric == 'ciede2000'
    assert result.warnings == []


def test_analyze_pixels_empty_palette(product_photo):
    result = analyze_pixels(product_photo, Palette([]), seed=0)
    assert result.matches == []
    assert result.warnings == ["No reference colors available"]


def test_analyze_pixels_threshold_warning(product_photo):
    far = Palette([ReferenceColor('y', 'Y', 'Yellow', '#ffff00')])
    policy = build_policy('auto', max_distance=5)
    result = analyze_pixels(product_photo, far, seed=0, policy=policy)
    assert result.matches == []
    assert "No matches within the distance threshold" in result.warnings


def test_run_pipeline(photo_file, palette):
    result = run_pipeline(str(photo_file), palette, seed=1, policy=BULK_MATCH)
    assert result.source == str(photo_file)
    assert result.metric == 'cie76'
    assert result.matches[0].reference.code == 'RED'


def test_render(product_photo, palette):
    result = analyze_pixels(product_photo, palette, seed=0)
    text = render(result)
    assert 'DOMINANT COLORS:' in text
    assert '#c81e1e' in text
    assert 'RED (Red) #C81E1E | ΔE=0.0' in text


def test_render_html_escapes(product_photo, palette):
    result = analyze_pixels(product_photo, palette, seed=0, source='<photo>.png')
    html = render_html(result)
    assert html.startswith('<!DOCTYPE html>')
    assert '&lt;photo&gt;.png' in html
    assert '<photo>' not in html
    assert 'RED' in html


def test_render_empty_result(palette):
    blank = np.full((20, 20, 3), 255, dtype=np.uint8)
    result = analyze_pixels(blank, Palette([]), seed=0)
    assert '(none)' in render(result)
    assert 'No matches.' in render_html(result)


def test_build_policy_overrides():
    policy = build_policy('auto', metric='cie76', max_distance=30, max_colors=2, matches_per_color=3)
    assert policy.metric == 'cie76'
    assert policy.max_distance == 30
    assert policy.max_colors == 2
    assert policy.matches_per_color == 3
    assert build_policy('auto') == AUTO_MATCH
    with pytest.raises(ValueError):
        build_policy('strict')


def test_cli_writes_reports(photo_file, palette_file, tmp_path, capsys):
    html_path = tmp_path / 'report.html'
    swatch_path = tmp_path / 'swatch.png'
    analyze.main(['-i', str(photo_file), '-p', str(palette_file), '--seed', '3',
                  '-o', str(html_path), '--swatch', str(swatch_path)])
    out = capsys.readouterr().out
    assert 'MATCHES:' in out
    assert 'RED' in out
    assert html_path.exists()
    assert swatch_path.exists()


def test_cli_missing_image(palette_file, tmp_path):
    with pytest.raises(SystemExit) as exc:
        analyze.main(['-i', str(tmp_path / 'missing.png'), '-p', str(palette_file)])
    assert exc.value.code == 2


def test_cli_missing_palette(photo_file, tmp_path):
    with pytest.raises(SystemExit) as exc:
        analyze.main(['-i', str(photo_file), '-p', str(tmp_path / 'missing.json')])
    assert exc.value.code == 2


def test_cli_coated_palette(photo_file, tmp_path, capsys):
    palette_path = tmp_path / 'pantone-coated.json'
    palette_path.write_text(json.dumps([
        {'pantone': 'red-c', 'hex': 'c81e1e'},
        {'pantone': 'blue-c', 'hex': '1e1ec8'},
        {'pantone': 'gray-c'},
    ]))
    analyze.main(['-i', str(photo_file), '-p', str(palette_path), '--palette-format', 'coated',
                  '--seed', '0'])
    captured = capsys.readouterr()
    assert 'PANTONE RED C' in captured.out
    assert 'skipped 1 palette records without a hex color' in captured.err
