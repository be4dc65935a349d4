#!/usr/bin/env python3
"""
Bayer Ordered Dithering

각 픽셀은 자기 값과 매트릭스 위치의 threshold만으로 결정됩니다.
오차 확산이 없으므로 픽셀 간 순서 의존성이 없고, 매트릭스는 한 번 만들어서
모든 이미지/스레드에서 읽기 전용으로 공유합니다.
"""

import numbers
from dataclasses import dataclass, field

import numpy as np
from PIL import Image

from dither_errors import InvalidDimensions, InvalidMatrix, InvalidPalette

DEFAULT_BAYER_ORDER = 8
DEFAULT_LEVELS = 2
MAX_VALUE = 255

DITHERABLE_MODES = ('L', 'LA', 'RGB', 'RGBA')


def _is_int(value):
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def is_power_of_two(n):
    return _is_int(n) and n > 0 and (n & (n - 1)) == 0


def generate_bayer_matrix(order):
    """
    order x order Bayer 매트릭스 생성 (값 0 ~ order^2-1)

    재귀 정의:
        M(1)  = [[0]]
        M(2n) = [[4*M(n)+0, 4*M(n)+2],
                 [4*M(n)+3, 4*M(n)+1]]

    Args:
        order: 매트릭스 크기 (2의 거듭제곱, 2 이상)

    Raises:
        InvalidMatrix: order가 2 이상의 2의 거듭제곱이 아닐 때
    """
    if not is_power_of_two(order) or order < 2:
        raise InvalidMatrix(f"Bayer order must be a power of 2 (>= 2), got {order!r}")

    matrix = np.zeros((1, 1), dtype=np.int64)
    while matrix.shape[0] < order:
        matrix = np.block([
            [4 * matrix + 0, 4 * matrix + 2],
            [4 * matrix + 3, 4 * matrix + 1],
        ])
    return matrix


@dataclass(frozen=True, eq=False)
class DitherMatrix:
    """
    읽기 전용 N x N threshold 매트릭스

    Fields:
        ranks: 순위 값 (0 ~ N^2-1)
        max_value: 채널 최대 밝기 (8비트 = 255)
        thresholds: ranks를 [0, max_value) 범위로 정규화한 값
    """
    ranks: np.ndarray
    max_value: int = MAX_VALUE
    thresholds: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        if not _is_int(self.max_value) or self.max_value <= 0:
            raise InvalidMatrix(f"max_value must be a positive integer, got {self.max_value!r}")

        try:
            ranks = np.array(self.ranks, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidMatrix(f"Matrix is not numeric: {e}") from e

        if ranks.ndim != 2 or ranks.shape[0] != ranks.shape[1] or ranks.size == 0:
            raise InvalidMatrix(f"Matrix must be square, got shape {ranks.shape}")

        cells = ranks.size
        if not np.all(np.isfinite(ranks)) or ranks.min() < 0 or ranks.max() >= cells:
            raise InvalidMatrix(f"Matrix values must be in [0, {cells - 1}]")

        thresholds = ranks * (self.max_value / cells)
        ranks.setflags(write=False)
        thresholds.setflags(write=False)
        object.__setattr__(self, 'ranks', ranks)
        object.__setattr__(self, 'thresholds', thresholds)

    @classmethod
    def bayer(cls, order=DEFAULT_BAYER_ORDER, max_value=MAX_VALUE):
        return cls(generate_bayer_matrix(order), max_value)

    @property
    def size(self):
        return self.ranks.shape[0]

    def tile(self, height, width):
        """매트릭스를 height x width로 반복 (모듈로 인덱싱)"""
        n = self.size
        return self.thresholds[np.arange(height)[:, None] % n, np.arange(width)[None, :] % n]


def palette_levels(levels=DEFAULT_LEVELS, max_value=MAX_VALUE):
    """
    채널당 출력 레벨 (0 ~ max_value 균등 분할)

    예: levels=2 -> [0, 255], levels=4 -> [0, 85, 170, 255]

    Raises:
        InvalidPalette: levels가 2 미만이거나 max_value+1 초과일 때
    """
    if not _is_int(levels) or levels < 2 or levels > max_value + 1:
        raise InvalidPalette(f"levels must be between 2 and {max_value + 1}, got {levels!r}")
    return np.rint(np.linspace(0, max_value, levels)).astype(np.int64)


def ordered_dither(pixels, matrix, levels=DEFAULT_LEVELS):
    """
    Ordered Dithering

    픽셀 값 I가 인접한 두 팔레트 레벨 lo <= I <= hi 사이에 있을 때
    frac = (I - lo) / (hi - lo), t = threshold / max_value 로 두고
    frac + t >= 1 이면 hi, 아니면 lo를 선택합니다.
    이미 팔레트 레벨인 값은 그대로 유지됩니다 (frac = 0, t < 1).

    Args:
        pixels: HxW 또는 HxWxC 배열 (채널별로 독립 처리)
        matrix: DitherMatrix
        levels: 채널당 레벨 수 (2 = 흑백)

    Returns:
        입력과 같은 shape의 배열 (max_value <= 255이면 uint8)
    """
    arr = np.asarray(pixels)
    if arr.ndim not in (2, 3):
        raise InvalidDimensions(f"Expected HxW or HxWxC pixels, got shape {arr.shape}")

    palette = palette_levels(levels, matrix.max_value)
    values = np.clip(arr.astype(np.float64), 0, matrix.max_value)

    height, width = arr.shape[:2]
    t = matrix.tile(height, width) / matrix.max_value
    if arr.ndim == 3:
        t = t[..., None]

    # 아래쪽 레벨 인덱스 (최댓값은 마지막 구간의 hi)
    idx = np.searchsorted(palette, values, side='right') - 1
    idx = np.clip(idx, 0, len(palette) - 2)
    lo = palette[idx]
    hi = palette[idx + 1]
    frac = (values - lo) / (hi - lo)

    result = np.where(frac + t >= 1.0, hi, lo)
    dtype = np.uint8 if matrix.max_value <= 255 else np.uint16
    return result.astype(dtype)


def dither_image(img, matrix, levels=DEFAULT_LEVELS):
    """
    PIL 이미지 디더링 (모드 유지)

    L -> L (levels=2 이면 0/255 흑백), RGB/RGBA -> 채널별 양자화

    Raises:
        InvalidDimensions: L, LA, RGB, RGBA 이외의 모드
    """
    if img.mode not in DITHERABLE_MODES:
        raise InvalidDimensions(f"Unsupported image mode for dithering: {img.mode}")
    result = ordered_dither(np.asarray(img), matrix, levels)
    return Image.fromarray(result)


def level_counts(pixels, levels=DEFAULT_LEVELS, max_value=MAX_VALUE):
    """
    팔레트 레벨별 픽셀 수와 팔레트 밖 값의 개수

    Returns:
        ({level: count}, off_palette_count)
    """
    arr = np.asarray(pixels)
    palette = palette_levels(levels, max_value)
    counts = {int(level): int(np.count_nonzero(arr == level)) for level in palette}
    off_palette = int(arr.size - sum(counts.values()))
    return counts, off_palette
