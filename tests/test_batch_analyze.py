"""Tests for batch_analyze: directory scanning, seeding, the batch runner and CLI."""

import json

import numpy as np
import pytest
from PIL import Image

import batch_analyze
from batch_analyze import derive_seeds, find_images, run_batch
from palette import Palette


PALETTE_RECORDS = [
    {'pantone': 'red-c', 'hex': '#c81e1e'},
    {'pantone': 'blue-c', 'hex': '#1e1ec8'},
    {'pantone': 'green-c', 'hex': '#1ec81e'},
]


def write_solid(path, rgb, size=(40, 40)):
    Image.new('RGB', size, rgb).save(path)
    return path


@pytest.fixture
def image_dir(tmp_path):
    directory = tmp_path / 'images'
    directory.mkdir()
    write_solid(directory / 'a_red.png', (200, 30, 30))
    write_solid(directory / 'b_blue.jpg', (30, 30, 200))
    write_solid(directory / 'c_green.PNG', (30, 200, 30))
    (directory / 'notes.txt').write_text('not an image')
    return directory


@pytest.fixture
def palette():
    return Palette.from_records(PALETTE_RECORDS)


def test_find_images(image_dir):
    names = [p.name for p in find_images(image_dir)]
    assert names == ['a_red.png', 'b_blue.jpg', 'c_green.PNG']


def test_derive_seeds():
    assert derive_seeds(None, 3) == [None, None, None]
    seeds = derive_seeds(42, 4)
    assert seeds == derive_seeds(42, 4)
    assert len(set(seeds)) == 4


def test_run_batch_sequential(image_dir, palette):
    items = run_batch(find_images(image_dir), palette, seed=0)
    assert all(item.ok for item in items)
    codes = [item.result.matches[0].reference.code for item in items]
    assert codes == ['RED-C', 'BLUE-C', 'GREEN-C']


def test_run_batch_reports_failures(image_dir, palette):
    broken = image_dir / 'broken.png'
    broken.write_text('nope')
    items = run_batch([broken, image_dir / 'a_red.png'], palette, seed=0)
    assert not items[0].ok
    assert 'ValueError' in items[0].error
    assert items[1].ok


def test_run_batch_zero_budget(image_dir, palette):
    items = run_batch(find_images(image_dir), palette, time_budget=0)
    assert all(item.timed_out for item in items)
    assert not any(item.ok for item in items)


def test_run_batch_process_pool(image_dir, palette):
    images = find_images(image_dir)
    sequential = run_batch(images, palette, seed=7)
    pooled = run_batch(images, palette, seed=7, workers=2)
    assert [i.image_path for i in pooled] == images
    for a, b in zip(sequential, pooled):
        assert b.ok
        assert a.result.dominant_colors == b.result.dominant_colors
        assert [m.reference_id for m in a.result.matches] == [m.reference_id for m in b.result.matches]


def test_run_batch_process_pool_budget_exhausted(tmp_path, palette):
    directory = tmp_path / 'large'
    directory.mkdir()
    colors = [(200, 30, 30), (30, 30, 200), (30, 200, 30), (200, 200, 30)]
    images = [write_solid(directory / f'{i}.png', rgb, size=(800, 800))
              for i, rgb in enumerate(colors)]

    items = run_batch(images, palette, seed=0, workers=2, time_budget=0)
    assert [item.image_path for item in items] == images
    assert all(item.timed_out and not item.ok for item in items)
    assert all(item.error == 'time budget exhausted' for item in items)


def test_run_batch_process_pool_within_budget(image_dir, palette):
    images = find_images(image_dir)
    items = run_batch(images, palette, seed=0, workers=2, time_budget=120)
    assert [item.image_path for item in items] == images
    assert all(item.ok and not item.timed_out for item in items)


def test_cli(image_dir, tmp_path, capsys):
    palette_path = tmp_path / 'palette.json'
    palette_path.write_text(json.dumps(PALETTE_RECORDS))
    out_dir = tmp_path / 'out'

    batch_analyze.main(['-i', str(image_dir), '-o', str(out_dir), '-p', str(palette_path), '--seed', '1'])

    out = capsys.readouterr().out
    assert 'Completed: 3/3 succeeded' in out
    assert sorted(p.name for p in out_dir.iterdir()) == [
        'a_red-pantone.html', 'b_blue-pantone.html', 'c_green-pantone.html',
    ]


def test_cli_exit_codes(image_dir, tmp_path):
    palette_path = tmp_path / 'palette.json'
    palette_path.write_text(json.dumps(PALETTE_RECORDS))

    with pytest.raises(SystemExit) as exc:
        batch_analyze.main(['-i', str(tmp_path / 'nowhere'), '-o', str(tmp_path / 'out'),
                            '-p', str(palette_path)])
    assert exc.value.code == 2

    (image_dir / 'broken.png').write_text('nope')
    with pytest.raises(SystemExit) as exc:
        batch_analyze.main(['-i', str(image_dir), '-o', str(tmp_path / 'out'), '-p', str(palette_path)])
    assert exc.value.code == 1

    empty = tmp_path / 'empty.json'
    empty.write_text('[]')
    with pytest.raises(SystemExit) as exc:
        batch_analyze.main(['-i', str(image_dir), '-o', str(tmp_path / 'out'), '-p', str(empty)])
    assert exc.value.code == 2
