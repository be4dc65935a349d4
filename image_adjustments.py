#!/usr/bin/env python3
"""
이미지 로드, 축소, 밝기 변환 함수들

파이프라인 순서:
    load_image -> resize_to_max_side -> (to_luminance | flatten_alpha) -> 디더링
"""

import numbers

import numpy as np
from PIL import Image, ImageOps

from dither_errors import DecodeError, InvalidDimensions

# 파이프라인 내부에서 다루는 모드
SUPPORTED_MODES = ('L', 'LA', 'RGB', 'RGBA')

# 그 외 모드 -> 변환 대상 모드
MODE_CONVERSIONS = {
    '1': 'L',
    'La': 'LA',
    'PA': 'RGBA',
    'RGBa': 'RGBA',
    'RGBX': 'RGB',
    'CMYK': 'RGB',
    'YCbCr': 'RGB',
    'LAB': 'RGB',
    'HSV': 'RGB',
}

# 16비트 / 32비트 정수 그레이스케일 (0-65535)
WIDE_GRAY_MODES = ('I', 'I;16', 'I;16L', 'I;16B', 'I;16N')

WHITE = 255


def normalize_mode(img):
    """
    이미지를 L, LA, RGB, RGBA 중 하나로 변환

    팔레트(P)는 투명색이 있으면 RGBA, 없으면 RGB로,
    16비트 그레이스케일은 0-255 범위로 줄여서 L로 변환합니다.
    float(F) 이미지는 최댓값이 1.0 이하이면 0-1 범위로 보고 255를 곱하고,
    그 외에는 0-255 범위로 보고 잘라냅니다.
    """
    if img.mode in SUPPORTED_MODES:
        return img

    if img.mode == 'P':
        return img.convert('RGBA' if 'transparency' in img.info else 'RGB')

    if img.mode in WIDE_GRAY_MODES:
        arr = np.asarray(img, dtype=np.float64) / 257.0
        arr = np.clip(np.rint(arr), 0, 255).astype(np.uint8)
        return Image.fromarray(arr)

    if img.mode == 'F':
        arr = np.nan_to_num(np.asarray(img, dtype=np.float64))
        if arr.size and arr.max() <= 1.0:
            arr = arr * 255.0
        arr = np.clip(np.rint(arr), 0, 255).astype(np.uint8)
        return Image.fromarray(arr)

    return img.convert(MODE_CONVERSIONS.get(img.mode, 'RGB'))


def load_image(path):
    """
    이미지 파일을 열어서 첫 프레임을 메모리에 로드

    EXIF 방향 정보가 있으면 회전을 적용합니다.

    Raises:
        DecodeError: 파일이 없거나, 이미지가 아니거나, 손상된 경우
    """
    try:
        with Image.open(path) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            return normalize_mode(img)
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(path, e) from e


def _round_half_up(value):
    return int(np.floor(value + 0.5))


def target_dimensions(width, height, max_side):
    """
    긴 변이 max_side가 되도록 비율 유지 크기 계산

    원본이 이미 max_side 이하이면 원본 크기를 그대로 반환합니다 (확대 없음).

    Args:
        width, height: 원본 크기
        max_side: 긴 변의 최대 길이 (양의 정수)

    Returns:
        (new_width, new_height), 각 값은 1 이상

    Raises:
        InvalidDimensions: max_side가 양의 정수가 아니거나 원본 크기가 0일 때
    """
    if isinstance(max_side, bool) or not isinstance(max_side, numbers.Integral) or max_side <= 0:
        raise InvalidDimensions(f"max_image_side must be a positive integer, got {max_side!r}")
    if width <= 0 or height <= 0:
        raise InvalidDimensions(f"Image has empty dimensions: {width}x{height}")

    scale = min(1.0, max_side / max(width, height))
    if scale == 1.0:
        return width, height

    new_width = max(1, _round_half_up(width * scale))
    new_height = max(1, _round_half_up(height * scale))
    return new_width, new_height


def resize_to_max_side(img, max_side):
    """
    긴 변을 max_side로 축소 (Lanczos)

    축소가 필요 없으면 같은 이미지 객체를 그대로 반환합니다.
    P, 1 모드는 Pillow가 nearest로 리샘플링하므로 먼저 변환합니다.
    """
    new_size = target_dimensions(img.width, img.height, max_side)
    if new_size == img.size:
        return img

    if img.mode not in SUPPORTED_MODES:
        img = normalize_mode(img)
    return img.resize(new_size, Image.Resampling.LANCZOS)


def flatten_alpha(img, background=WHITE):
    """
    알파 채널을 배경색(기본 흰색) 위에 합성

    LA -> L, RGBA -> RGB. 알파가 없으면 그대로 반환합니다.
    """
    if img.mode not in ('LA', 'RGBA'):
        return img

    base_mode = img.mode[:-1]
    fill = background if base_mode == 'L' else (background,) * 3
    canvas = Image.new(base_mode, img.size, fill)
    canvas.paste(img.convert(base_mode), mask=img.getchannel('A'))
    return canvas


def to_luminance(img):
    """
    그레이스케일(L) 변환

    ITU-R 601 luma: 0.299 R + 0.587 G + 0.114 B
    투명 영역은 흰색으로 처리됩니다.
    """
    img = flatten_alpha(img)
    if img.mode == 'L':
        return img
    return img.convert('L')
