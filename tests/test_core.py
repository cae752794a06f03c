"""
Test script for core watermark algorithms.

Run with: python -m pytest tests/test_core.py -v
Or simply: python tests/test_core.py
"""

import sys
import threading
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import numpy as np
import pytest

from unmark.core.alpha_mask import AlphaMaskCache, compute_alpha_mask
from unmark.core.detector import (
    DETECTION_CORRELATION_THRESHOLD,
    DETECTION_LUMA_THRESHOLD,
    mean_luma,
    score_region,
    score_watermark,
)
from unmark.core.placement import (
    LARGE_PRESET,
    SMALL_PRESET,
    Rectangle,
    resolve_config,
    resolve_rectangle,
    watermark_info,
)
from unmark.core.remover import apply_reverse_alpha
from unmark.errors import (
    AssetLoadError,
    InsufficientPixelsError,
    NoOpaqueSignalError,
    OutOfBoundsError,
    SizeMismatchError,
    UnsupportedSizeError,
)

from sample_images import (
    BrokenAssetStore,
    SyntheticAssetStore,
    capture_mask,
    composite,
    create_test_array,
    render_capture,
)


# ===== Placement =====

def test_preset_selection():
    """Large preset only when BOTH sides exceed 1024."""
    print("\n" + "=" * 50)
    print("Testing Preset Selection")
    print("=" * 50)

    assert resolve_config(1025, 1025) == LARGE_PRESET
    assert resolve_config(4000, 3000) == LARGE_PRESET

    assert resolve_config(1024, 1025) == SMALL_PRESET
    assert resolve_config(1025, 1024) == SMALL_PRESET
    assert resolve_config(1024, 1024) == SMALL_PRESET
    assert resolve_config(800, 600) == SMALL_PRESET

    assert (LARGE_PRESET.logo_size, LARGE_PRESET.margin_right, LARGE_PRESET.margin_bottom) == (96, 64, 64)
    assert (SMALL_PRESET.logo_size, SMALL_PRESET.margin_right, SMALL_PRESET.margin_bottom) == (48, 32, 32)
    print("✅ Preset thresholds are strict on both axes")


@pytest.mark.parametrize("width,height", [(800, 600), (80, 80), (1025, 1025), (3000, 1024), (1920, 1080)])
def test_rectangle_inset_from_corner(width, height):
    bounds = Rectangle.from_size(width, height)
    config = resolve_config(width, height)
    rect = resolve_rectangle(bounds, config)

    assert rect.width == config.logo_size
    assert rect.height == config.logo_size
    assert width - rect.max_x == config.margin_right
    assert height - rect.max_y == config.margin_bottom
    assert bounds.contains(rect)


def test_rectangle_out_of_bounds():
    config = resolve_config(79, 200)
    with pytest.raises(OutOfBoundsError):
        resolve_rectangle(Rectangle.from_size(79, 200), config)
    with pytest.raises(OutOfBoundsError):
        resolve_rectangle(Rectangle.from_size(200, 10), config)


def test_watermark_info():
    info = watermark_info(800, 600)
    assert info.size == 48
    assert info.position == Rectangle(720, 520, 768, 568)

    small = watermark_info(20, 20)
    assert small.size == 48
    assert small.position is None


def test_rectangle_helpers():
    rect = Rectangle(10, 10, 20, 20)
    grown = rect.expand(5)
    assert grown == Rectangle(5, 5, 25, 25)
    assert grown.intersect(Rectangle(0, 0, 22, 100)) == Rectangle(5, 5, 22, 25)
    assert rect.intersect(Rectangle(50, 50, 60, 60)).is_empty()
    assert rect.area == 100


# ===== Alpha mask =====

def test_compute_alpha_mask_uses_max_channel():
    from PIL import Image

    img = Image.new("RGB", (2, 1))
    img.putpixel((0, 0), (10, 255, 0))
    img.putpixel((1, 0), (0, 0, 51))

    mask = compute_alpha_mask(img)
    assert mask.dtype == np.float32
    assert mask.shape == (2,)
    assert mask[0] == pytest.approx(1.0)
    assert mask[1] == pytest.approx(0.2)


def test_compute_alpha_mask_sixteen_bit():
    from PIL import Image

    img = Image.new("I;16", (1, 1))
    img.putpixel((0, 0), 65535 // 2)

    mask = compute_alpha_mask(img)
    assert mask[0] == pytest.approx(0.5, abs=1e-4)


def test_mask_cache_loads_once_and_shares():
    print("\n" + "=" * 50)
    print("Testing Alpha Mask Cache")
    print("=" * 50)

    store = SyntheticAssetStore()
    cache = AlphaMaskCache(store)

    first = cache.get_mask(48)
    second = cache.get_mask(48)

    assert first is second
    assert first.shape == (48 * 48,)
    assert not first.flags.writeable
    assert float(first.min()) >= 0.0 and float(first.max()) <= 1.0
    assert store.reads[48] == 1
    assert cache.loaded_sizes() == [48]

    np.testing.assert_array_equal(first, capture_mask(48))
    print("✅ Mask loaded once and shared")


def test_mask_cache_concurrent_first_load():
    """Many threads racing on an unresolved size see exactly one load."""
    store = SyntheticAssetStore(delay=0.05)
    cache = AlphaMaskCache(store)

    workers = 16
    barrier = threading.Barrier(workers)
    results = [None] * workers

    def fetch(idx):
        barrier.wait()
        results[idx] = cache.get_mask(96)

    threads = [threading.Thread(target=fetch, args=(i,)) for i in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.reads[96] == 1
    assert all(r is results[0] for r in results)
    assert results[0].size == 96 * 96


def test_mask_cache_rejects_reserved_size():
    store = SyntheticAssetStore()
    cache = AlphaMaskCache(store)

    with pytest.raises(UnsupportedSizeError):
        cache.get_mask(64)
    with pytest.raises(UnsupportedSizeError):
        cache.get_mask(12)
    assert store.reads[64] == 0


def test_mask_cache_memoizes_errors():
    store = SyntheticAssetStore(sizes=(48,))
    cache = AlphaMaskCache(store)

    with pytest.raises(AssetLoadError) as first:
        cache.get_mask(96)
    with pytest.raises(AssetLoadError) as second:
        cache.get_mask(96)

    assert str(first.value) == str(second.value)
    assert "bg_96.png" in str(first.value)
    assert store.reads[96] == 1

    # Other sizes are unaffected
    assert cache.get_mask(48).size == 48 * 48


def test_mask_cache_undecodable_asset():
    store = BrokenAssetStore()
    cache = AlphaMaskCache(store)

    for _ in range(3):
        with pytest.raises(AssetLoadError, match="decode"):
            cache.get_mask(48)
    assert store.reads[48] == 1


# ===== Removal =====

def test_reverse_alpha_round_trip():
    print("\n" + "=" * 50)
    print("Testing Reverse Alpha Round Trip")
    print("=" * 50)

    original = create_test_array()
    rect = resolve_rectangle(Rectangle.from_size(800, 600), SMALL_PRESET)
    mask = capture_mask(48)
    watermarked = composite(original, mask, rect)

    restored = apply_reverse_alpha(watermarked, mask, rect)

    diff = np.abs(restored.astype(np.int16) - original.astype(np.int16))
    assert diff.max() <= 1, f"Max channel error {diff.max()}"
    # Input was not modified
    assert not np.array_equal(watermarked, original)
    np.testing.assert_array_equal(
        watermarked, composite(original, mask, rect)
    )
    print(f"✅ Restored within ±{diff.max()} per channel")


def test_reverse_alpha_leaves_outside_untouched():
    original = create_test_array()
    rect = resolve_rectangle(Rectangle.from_size(800, 600), SMALL_PRESET)
    mask = capture_mask(48)
    watermarked = composite(original, mask, rect)

    restored = apply_reverse_alpha(watermarked, mask, rect)

    outside = np.ones(original.shape[:2], dtype=bool)
    outside[rect.min_y:rect.max_y, rect.min_x:rect.max_x] = False
    np.testing.assert_array_equal(restored[outside], watermarked[outside])


def test_reverse_alpha_clear_mask_is_noop():
    original = create_test_array()
    rect = resolve_rectangle(Rectangle.from_size(800, 600), SMALL_PRESET)
    mask = np.full(48 * 48, 0.0019, dtype=np.float32)

    restored = apply_reverse_alpha(original, mask, rect)
    np.testing.assert_array_equal(restored, original)


def test_reverse_alpha_keeps_alpha_channel():
    original = create_test_array()
    rgba = np.dstack([original, np.full(original.shape[:2], 77, dtype=np.uint8)])
    rect = resolve_rectangle(Rectangle.from_size(800, 600), SMALL_PRESET)

    restored = apply_reverse_alpha(rgba, capture_mask(48), rect)
    assert restored.shape == rgba.shape
    assert (restored[:, :, 3] == 77).all()


def test_reverse_alpha_clamps_and_caps():
    pixels = np.zeros((100, 100, 3), dtype=np.uint8)
    rect = Rectangle(0, 0, 2, 1)

    # Fully opaque alpha is capped at 0.99; dark input would go negative -> 0
    restored = apply_reverse_alpha(pixels, np.array([1.0, 0.5], dtype=np.float32), rect)
    assert restored[0, 0].tolist() == [0, 0, 0]
    assert restored[0, 1].tolist() == [0, 0, 0]

    pixels[0, 0] = 255
    restored = apply_reverse_alpha(pixels, np.array([1.0, 0.0], dtype=np.float32), rect)
    # (255 - 0.99 * 255) / 0.01 = 255
    assert restored[0, 0].tolist() == [255, 255, 255]


def test_reverse_alpha_size_mismatch():
    pixels = create_test_array()
    rect = resolve_rectangle(Rectangle.from_size(800, 600), SMALL_PRESET)

    with pytest.raises(SizeMismatchError):
        apply_reverse_alpha(pixels, np.zeros(47 * 47, dtype=np.float32), rect)
    with pytest.raises(SizeMismatchError):
        apply_reverse_alpha(pixels, np.zeros(96 * 96, dtype=np.float32), rect)
    with pytest.raises(OutOfBoundsError):
        apply_reverse_alpha(pixels, np.zeros(48 * 48, dtype=np.float32), Rectangle(790, 0, 838, 48))


# ===== Detection =====

def _small_setup():
    original = create_test_array()
    rect = resolve_rectangle(Rectangle.from_size(800, 600), SMALL_PRESET)
    return original, rect, capture_mask(48)


def test_detection_present_on_composite():
    print("\n" + "=" * 50)
    print("Testing Detection")
    print("=" * 50)

    original, rect, mask = _small_setup()
    result = score_region(composite(original, mask, rect), rect, mask)

    print(f"   score={result.score:.2f} corr={result.correlation:.3f}")
    assert result.present
    assert result.score > DETECTION_LUMA_THRESHOLD
    assert result.correlation > DETECTION_CORRELATION_THRESHOLD
    assert result.info.size == 48
    assert result.info.position == rect
    print("✅ Watermark detected")


def test_detection_absent_on_clean_image():
    original, rect, mask = _small_setup()
    result = score_region(original, rect, mask)

    assert not result.present
    assert result.info.position == rect


def test_detection_absent_after_removal():
    original, rect, mask = _small_setup()
    cleaned = apply_reverse_alpha(composite(original, mask, rect), mask, rect)
    assert not score_region(cleaned, rect, mask).present


def test_detection_rejects_bright_corner():
    """Uniformly bright corner without the logo shape."""
    original, rect, mask = _small_setup()
    bright = original.copy()
    bright[rect.min_y:rect.max_y, rect.min_x:rect.max_x] = 250

    result = score_region(bright, rect, mask)
    assert not result.present
    assert abs(result.score) < DETECTION_LUMA_THRESHOLD


def test_detection_rejects_faint_mark():
    """Right shape, but too little brightness excess."""
    original, rect, mask = _small_setup()
    faint = composite(original, mask * 0.05, rect)

    result = score_region(faint, rect, mask)
    assert not result.present


def test_flat_region_has_zero_correlation():
    flat = np.full((200, 200, 3), 90, dtype=np.uint8)
    rect = resolve_rectangle(Rectangle.from_size(200, 200), SMALL_PRESET)
    delta, corr = score_watermark(flat, rect, capture_mask(48), 90.0)
    assert corr == 0.0
    assert delta == pytest.approx(0.0)


def test_degenerate_masks():
    original, rect, _ = _small_setup()

    with pytest.raises(InsufficientPixelsError):
        score_watermark(original, rect, np.ones(48 * 48, dtype=np.float32), 0.0)
    with pytest.raises(NoOpaqueSignalError):
        score_watermark(original, rect, np.zeros(48 * 48, dtype=np.float32), 0.0)
    with pytest.raises(SizeMismatchError):
        score_watermark(original, rect, np.zeros(10, dtype=np.float32), 0.0)


def test_mean_luma_excludes_inner_rect():
    pixels = np.zeros((10, 10, 3), dtype=np.uint8)
    pixels[3:6, 3:6] = 255

    mean, count = mean_luma(pixels, Rectangle(0, 0, 10, 10), exclude=Rectangle(3, 3, 6, 6))
    assert count == 91
    assert mean == pytest.approx(0.0)

    mean, count = mean_luma(pixels, Rectangle(3, 3, 6, 6))
    assert count == 9
    assert mean == pytest.approx(255.0)

    assert mean_luma(pixels, Rectangle(5, 5, 5, 5)) == (0.0, 0)


def test_large_capture_shape():
    capture = render_capture(96)
    assert capture.size == (96, 96)
    mask = capture_mask(96)
    assert (mask < 0.02).any()
    assert mask.max() <= 0.61


def main():
    """Run all tests."""
    print("🧪 unmark Core Module Tests")
    print("=" * 50)

    return pytest.main([__file__, "-v"])


if __name__ == "__main__":
    sys.exit(main())
