"""Watermark mask building and blending."""

from __future__ import annotations

import numpy as np
import pytest
from PIL import Image

from imgtool.components.watermark import (
    WatermarkCompositor,
    pad_mask,
    place_mask,
    rasterize_text,
    scale_opacity,
    tile_mask,
)
from imgtool.exceptions import CompositeError
from imgtool.options import WatermarkSpec


def _gradient(mode: str, size=(320, 240)) -> Image.Image:
    width, height = size
    ramp = np.tile(np.linspace(0, 200, width, dtype=np.uint8), (height, 1))
    base = Image.fromarray(ramp)
    if mode == "L":
        return base
    rgb = Image.merge("RGB", (base, base.transpose(Image.Transpose.FLIP_LEFT_RIGHT), base))
    if mode == "RGB":
        return rgb
    if mode == "RGBA":
        rgba = rgb.convert("RGBA")
        rgba.putalpha(Image.new("L", size, 180))
        return rgba
    return rgb.convert(mode)


@pytest.mark.parametrize("replicate", [True, False])
@pytest.mark.parametrize("mode", ["L", "LA", "RGB", "RGBA", "P", "CMYK"])
def test_output_keeps_size_and_mode(mode, replicate):
    source = _gradient(mode)
    spec = WatermarkSpec(text="imgtool", opacity=0.7, replicate=replicate)
    result = WatermarkCompositor(spec).apply(source)
    assert result.size == source.size
    assert result.mode == source.mode


@pytest.mark.parametrize("replicate", [True, False])
def test_zero_opacity_still_blends_and_matches_source(replicate):
    source = _gradient("RGB")
    spec = WatermarkSpec(text="sample", opacity=0.0, replicate=replicate)
    result = WatermarkCompositor(spec).apply(source)
    # The blend always runs; equality is only expected up to rounding.
    assert result is not source
    diff = np.abs(np.asarray(result, dtype=np.int16) - np.asarray(source, dtype=np.int16))
    assert diff.max() <= 1


def test_full_opacity_paints_foreground_colour():
    source = Image.new("RGB", (400, 300), (0, 0, 0))
    spec = WatermarkSpec(text="MARK", opacity=1.0, replicate=True, color="red")
    pixels = np.asarray(WatermarkCompositor(spec).apply(source))
    assert pixels[:, :, 0].max() == 255
    assert pixels[:, :, 1].max() == 0
    assert pixels[:, :, 2].max() == 0


def test_partial_coverage_is_blended_not_selected():
    source = Image.new("L", (400, 300), 0)
    spec = WatermarkSpec(text="Wg", opacity=1.0, replicate=True)
    values = set(np.unique(np.asarray(WatermarkCompositor(spec).apply(source))).tolist())
    # anti-aliased glyph edges produce intermediate values
    assert values - {0, 255}


def test_alpha_channel_passes_through():
    source = _gradient("RGBA")
    spec = WatermarkSpec(text="alpha", opacity=1.0, replicate=True)
    result = WatermarkCompositor(spec).apply(source)
    assert np.array_equal(np.asarray(result)[:, :, 3], np.asarray(source)[:, :, 3])


def _sixteen_bit_png(tmp_path, size=(320, 240)) -> Image.Image:
    width, height = size
    ramp = np.tile(np.linspace(0, 65534, width).astype(np.uint16), (height, 1))
    path = tmp_path / "deep.png"
    Image.fromarray(ramp).save(path)
    image = Image.open(path)
    image.load()
    return image


@pytest.mark.parametrize("replicate", [True, False])
def test_sixteen_bit_png_keeps_depth_at_zero_opacity(tmp_path, replicate):
    source = _sixteen_bit_png(tmp_path)
    spec = WatermarkSpec(text="deep", opacity=0.0, replicate=replicate)
    result = WatermarkCompositor(spec).apply(source)

    assert result.mode == source.mode
    diff = np.abs(np.asarray(result, dtype=np.int64) - np.asarray(source, dtype=np.int64))
    assert diff.max() <= 1
    assert np.asarray(result).max() > 255


def test_sixteen_bit_full_opacity_reaches_white_level(tmp_path):
    source = Image.fromarray(np.zeros((300, 400), dtype=np.uint16))
    spec = WatermarkSpec(text="MARK", opacity=1.0, replicate=True)
    result = WatermarkCompositor(spec).apply(source)
    assert result.mode == source.mode
    assert np.asarray(result).max() == 65535


@pytest.mark.parametrize("mode", ["I", "F"])
def test_wide_modes_keep_values_at_zero_opacity(mode):
    values = np.tile(np.linspace(0, 4000, 320), (240, 1))
    dtype = np.int32 if mode == "I" else np.float32
    source = Image.fromarray(values.astype(dtype))
    assert source.mode == mode
    result = WatermarkCompositor(WatermarkSpec(text="wide", opacity=0.0, replicate=True)).apply(source)
    assert result.mode == mode
    assert np.allclose(np.asarray(result), np.asarray(source), atol=1)


def test_source_image_is_left_untouched():
    source = _gradient("RGB")
    before = np.asarray(source).copy()
    WatermarkCompositor(WatermarkSpec(text="keep", opacity=1.0)).apply(source)
    assert np.array_equal(np.asarray(source), before)


def test_replicate_covers_whole_image_single_stays_at_origin():
    size = (600, 600)
    spec = WatermarkSpec(text="A", opacity=1.0, font_size=6)
    single = WatermarkCompositor(spec).build_mask(size)
    tiled = WatermarkCompositor(
        WatermarkSpec(text="A", opacity=1.0, font_size=6, replicate=True)
    ).build_mask(size)

    assert single.shape == tiled.shape == (600, 600)
    assert single[:200, :200].any()
    assert not single[300:, 300:].any()
    assert tiled[300:, 300:].any()


def test_empty_text_gives_blank_mask_and_unchanged_image():
    source = _gradient("RGB")
    compositor = WatermarkCompositor(WatermarkSpec(text="", opacity=1.0, replicate=True))
    assert not compositor.build_mask(source.size).any()
    assert np.array_equal(np.asarray(compositor.apply(source)), np.asarray(source))


def test_mask_larger_than_source_is_cropped():
    source = Image.new("RGB", (20, 10), (10, 20, 30))
    spec = WatermarkSpec(text="a rather long watermark", opacity=0.5)
    result = WatermarkCompositor(spec).apply(source)
    assert result.size == (20, 10)


def test_invalid_colour_raises_composite_error():
    spec = WatermarkSpec(text="x", color="definitely-not-a-colour")
    with pytest.raises(CompositeError) as excinfo:
        WatermarkCompositor(spec).apply(Image.new("RGB", (50, 50)))
    assert excinfo.value.stage == "WATERMARKED"


def test_rasterize_scales_with_dpi():
    low = rasterize_text("Hi", font_size=12, dpi=72)
    high = rasterize_text("Hi", font_size=12, dpi=300)
    assert high.shape[0] > low.shape[0]
    assert high.dtype == np.uint8
    assert high.max() == 255


def test_scale_opacity_is_linear_and_truncates():
    mask = np.array([[0, 100, 255]], dtype=np.uint8)
    assert scale_opacity(mask, 0.5).tolist() == [[0, 50, 127]]
    assert scale_opacity(mask, 0.0).tolist() == [[0, 0, 0]]


def test_pad_mask_adds_margin_on_every_side():
    padded = pad_mask(np.full((4, 6), 9, dtype=np.uint8), 25)
    assert padded.shape == (54, 56)
    assert padded[25:29, 25:31].min() == 9
    assert padded[:25].max() == 0


def test_tile_mask_repeats_then_crops():
    mask = np.arange(6, dtype=np.uint8).reshape(2, 3)
    tiled = tile_mask(mask, (7, 5))
    assert tiled.shape == (5, 7)
    assert np.array_equal(tiled, np.tile(mask, (3, 3))[:5, :7])


def test_place_mask_aligns_at_origin():
    mask = np.full((2, 2), 7, dtype=np.uint8)
    placed = place_mask(mask, (5, 4))
    assert placed.shape == (4, 5)
    assert placed[:2, :2].min() == 7
    assert placed.sum() == 4 * 7
