import numpy as np
import pytest
from PIL import Image

from dither_errors import DecodeError, InvalidDimensions
from image_adjustments import (
    flatten_alpha,
    load_image,
    normalize_mode,
    resize_to_max_side,
    target_dimensions,
    to_luminance,
)


@pytest.mark.parametrize('size, max_side, expected', [
    ((1600, 1200), 800, (800, 600)),
    ((1200, 1600), 800, (600, 800)),
    ((1000, 1000), 800, (800, 800)),
    ((801, 3), 800, (800, 3)),
    ((10000, 1), 800, (800, 1)),
    ((333, 777), 100, (43, 100)),
])
def test_target_dimensions_downscales(size, max_side, expected):
    assert target_dimensions(*size, max_side) == expected


@pytest.mark.parametrize('size', [(800, 600), (100, 50), (1, 1), (800, 800)])
def test_target_dimensions_no_upscaling(size):
    assert target_dimensions(*size, 800) == size


@pytest.mark.parametrize('max_side', [0, -1, 8.5, True, '800', None])
def test_target_dimensions_rejects_bad_max_side(max_side):
    with pytest.raises(InvalidDimensions):
        target_dimensions(100, 100, max_side)


def test_target_dimensions_rejects_empty_image():
    with pytest.raises(InvalidDimensions):
        target_dimensions(0, 10, 800)


@pytest.mark.parametrize('width, height', [(1600, 1200), (1234, 567), (99, 4000), (3001, 3000)])
def test_aspect_ratio_preserved(width, height):
    out_w, out_h = target_dimensions(width, height, 800)
    assert max(out_w, out_h) == 800
    # 반올림 오차 1픽셀 이내
    if width >= height:
        assert abs(out_h - height * out_w / width) <= 1
    else:
        assert abs(out_w - width * out_h / height) <= 1


def test_resize_returns_same_object_when_small():
    img = Image.new('RGB', (300, 200), (10, 20, 30))
    assert resize_to_max_side(img, 800) is img


@pytest.mark.parametrize('mode', ['L', 'LA', 'RGB', 'RGBA'])
def test_resize_preserves_mode(mode):
    img = Image.new(mode, (1600, 1200))
    out = resize_to_max_side(img, 800)
    assert out.size == (800, 600)
    assert out.mode == mode


def test_resize_is_not_nearest_neighbour():
    # 1픽셀 체커보드를 절반으로 줄이면 nearest는 0/255만 남고, 필터는 회색이 됨
    checker = (np.indices((64, 64)).sum(axis=0) % 2 * 255).astype(np.uint8)
    out = np.asarray(resize_to_max_side(Image.fromarray(checker), 32))
    assert out.shape == (32, 32)
    assert np.all((out > 64) & (out < 192))


def test_resize_converts_palette_images():
    img = Image.new('P', (200, 100))
    out = resize_to_max_side(img, 50)
    assert out.size == (50, 25)
    assert out.mode == 'RGB'


def test_load_image_rgb(make_image):
    path = make_image('a.png', size=(40, 30))
    img = load_image(path)
    assert img.size == (40, 30)
    assert img.mode == 'RGB'


def test_load_image_applies_exif_orientation(tmp_path):
    path = tmp_path / 'rotated.jpg'
    exif = Image.Exif()
    exif[0x0112] = 6
    Image.new('RGB', (40, 20), (200, 100, 50)).save(path, exif=exif)

    assert load_image(path).size == (20, 40)


def test_load_image_garbage_raises_decode_error(corrupt_image):
    path = corrupt_image('broken.jpg')
    with pytest.raises(DecodeError) as excinfo:
        load_image(path)
    assert excinfo.value.path == path


def test_load_image_truncated_raises_decode_error(make_image):
    path = make_image('big.jpg', size=(400, 300))
    data = path.read_bytes()
    path.write_bytes(data[:len(data) // 3])

    with pytest.raises(DecodeError):
        load_image(path)


def test_load_image_missing_file_raises_decode_error(tmp_path):
    with pytest.raises(DecodeError):
        load_image(tmp_path / 'missing.png')


def test_normalize_palette_with_transparency():
    img = Image.new('P', (4, 4))
    img.info['transparency'] = 0
    assert normalize_mode(img).mode == 'RGBA'


def test_normalize_sixteen_bit_gray():
    arr = np.array([[0, 257, 65535]], dtype=np.uint16)
    out = normalize_mode(Image.fromarray(arr))
    assert out.mode == 'L'
    assert np.asarray(out).tolist() == [[0, 1, 255]]


def test_load_float_tiff_keeps_0_255_range(tmp_path):
    path = tmp_path / 'float.tiff'
    Image.fromarray(np.full((4, 4), 200.0, dtype=np.float32)).save(path)

    img = load_image(path)

    assert img.mode == 'L'
    assert np.all(np.asarray(img) == 200)


def test_normalize_float_unit_range():
    arr = np.array([[0.0, 0.5, 1.0]], dtype=np.float32)
    out = normalize_mode(Image.fromarray(arr))
    assert out.mode == 'L'
    assert np.asarray(out).tolist() == [[0, 128, 255]]


def test_normalize_float_clips_out_of_range():
    arr = np.array([[-20.0, 300.0, 17.0]], dtype=np.float32)
    assert np.asarray(normalize_mode(Image.fromarray(arr))).tolist() == [[0, 255, 17]]


def test_load_image_uses_first_frame_of_animation(tmp_path):
    path = tmp_path / 'anim.gif'
    frames = [Image.new('L', (8, 8), value) for value in (255, 0, 128)]
    frames[0].save(path, save_all=True, append_images=frames[1:], duration=100)

    with Image.open(path) as check:
        assert check.n_frames == 3

    img = load_image(path)
    assert img.size == (8, 8)
    assert np.asarray(to_luminance(img)).min() == 255


def test_normalize_bilevel_and_cmyk():
    assert normalize_mode(Image.new('1', (2, 2))).mode == 'L'
    assert normalize_mode(Image.new('CMYK', (2, 2))).mode == 'RGB'


def test_flatten_alpha_uses_white_background():
    img = Image.new('RGBA', (4, 4), (0, 0, 0, 0))
    out = flatten_alpha(img)
    assert out.mode == 'RGB'
    assert out.getpixel((0, 0)) == (255, 255, 255)


def test_flatten_alpha_keeps_opaque_pixels():
    img = Image.new('LA', (4, 4), (30, 255))
    out = flatten_alpha(img)
    assert out.mode == 'L'
    assert out.getpixel((1, 1)) == 30


def test_flatten_alpha_passthrough_without_alpha():
    img = Image.new('RGB', (4, 4))
    assert flatten_alpha(img) is img


def test_to_luminance_weights():
    img = Image.new('RGB', (1, 1), (255, 0, 0))
    assert to_luminance(img).getpixel((0, 0)) in (76, 77)
    img = Image.new('RGB', (1, 1), (0, 255, 0))
    assert to_luminance(img).getpixel((0, 0)) in (149, 150)
