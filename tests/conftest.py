import numpy as np
import pytest
from PIL import Image


def gradient_array(width, height, channels=None):
    """좌->우 밝기 그라데이션 (0 ~ 255)"""
    row = np.linspace(0, 255, width, dtype=np.float64)
    arr = np.tile(row, (height, 1))
    if channels:
        arr = np.stack([arr] * channels, axis=-1)
    return np.rint(arr).astype(np.uint8)


@pytest.fixture
def make_image(tmp_path):
    """tmp_path 아래에 그라데이션 이미지를 저장하고 경로 반환"""
    def _make(relative, size=(64, 48), mode='RGB', **save_kwargs):
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        width, height = size
        channels = {'L': None, 'RGB': 3, 'RGBA': 4}[mode]
        img = Image.fromarray(gradient_array(width, height, channels))
        img.save(path, **save_kwargs)
        return path
    return _make


@pytest.fixture
def corrupt_image(tmp_path):
    def _make(relative):
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b'this is not an image at all')
        return path
    return _make
