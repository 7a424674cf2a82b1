import numpy as np
import pytest

from outline import OutlineCache, dilate_fast, outline_layer, outline_ring


def _brute_dilate(mask, r):
    h, w = mask.shape
    out = np.zeros_like(mask, dtype=np.uint8)
    for y in range(h):
        for x in range(w):
            win = mask[max(0, y - r): y + r + 1, max(0, x - r): x + r + 1]
            out[y, x] = 1 if win.any() else 0
    return out


def _center_dot(w=5, h=5, x=2, y=2):
    m = np.zeros((h, w), np.uint8)
    m[y, x] = 1
    return m


@pytest.mark.parametrize("r", [1, 2, 3, 7])
def test_dilate_matches_square_kernel(r):
    rng = np.random.default_rng(r)
    mask = (rng.random((23, 31)) > 0.93).astype(np.uint8)
    assert np.array_equal(dilate_fast(mask, r), _brute_dilate(mask, r))


def test_dilate_radius_larger_than_image():
    mask = _center_dot()
    assert np.all(dilate_fast(mask, 50) == 1)


def test_dilate_zero_radius_is_identity():
    mask = _center_dot()
    out = dilate_fast(mask, 0)
    assert np.array_equal(out, mask)
    assert out is not mask


def test_dilate_empty_mask_stays_empty():
    assert not dilate_fast(np.zeros((6, 4), np.uint8), 3).any()


def test_ring_around_single_pixel():
    ring = outline_ring(_center_dot(), 1)
    expected = np.zeros((5, 5), bool)
    expected[1:4, 1:4] = True
    expected[2, 2] = False
    assert np.array_equal(ring, expected)
    assert ring.sum() == 8


def test_ring_clamped_at_corner():
    ring = outline_ring(_center_dot(x=0, y=0), 1)
    assert ring.sum() == 3
    assert not ring[0, 0]
    assert ring[0, 1] and ring[1, 0] and ring[1, 1]


def test_ring_monotonic_in_thickness():
    rng = np.random.default_rng(7)
    mask = (rng.random((30, 30)) > 0.97).astype(np.uint8)
    prev = outline_ring(mask, 1)
    for t in range(2, 6):
        cur = outline_ring(mask, t)
        assert np.all(cur[prev])
        prev = cur


def test_outline_layer_pixels():
    layer = outline_layer(_center_dot(), 1)
    assert layer.mode == "RGBA" and layer.size == (5, 5)
    arr = np.asarray(layer)
    assert tuple(arr[1, 1]) == (255, 255, 255, 255)
    assert tuple(arr[2, 2]) == (0, 0, 0, 0)
    assert tuple(arr[0, 0]) == (0, 0, 0, 0)
    assert (arr[..., 3] == 255).sum() == 8


def test_cache_computes_once_per_thickness():
    cache = OutlineCache()
    mask = _center_dot()
    a = cache.get_or_compute(mask, 2)
    b = cache.get_or_compute(mask, 2)
    assert a is b
    assert (cache.hits, cache.misses) == (1, 1)
    cache.get_or_compute(mask, 1)
    assert cache.thicknesses() == [2, 1]
    assert 1 in cache and len(cache) == 2


def test_cache_rejects_non_positive_thickness():
    cache = OutlineCache()
    with pytest.raises(ValueError):
        cache.get_or_compute(_center_dot(), 0)
    assert len(cache) == 0


def test_cache_clear():
    cache = OutlineCache()
    cache.get_or_compute(_center_dot(), 1)
    cache.clear()
    assert len(cache) == 0 and 1 not in cache


def test_bounded_cache_evicts_least_recently_used():
    cache = OutlineCache(max_entries=2)
    mask = _center_dot()
    cache.get_or_compute(mask, 1)
    cache.get_or_compute(mask, 2)
    cache.get_or_compute(mask, 1)  # touch 1
    cache.get_or_compute(mask, 3)
    assert cache.thicknesses() == [1, 3]


def test_bounded_cache_requires_positive_bound():
    with pytest.raises(ValueError):
        OutlineCache(max_entries=0)
