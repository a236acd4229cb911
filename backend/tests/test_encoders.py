import io

import pytest
from PIL import Image, features

from imgc.conversion.encoders import encode, encoder_info, normalize_options
from imgc.conversion.errors import EncodeError
from imgc.conversion.models import ImageFormat


@pytest.fixture
def rgb_image():
    return Image.effect_noise((48, 32), 60).convert("RGB")


def test_webp_defaults():
    assert normalize_options(ImageFormat.WEBP) == {"quality": 90.0, "lossless": False, "method": 4}


def test_png_and_jpeg_defaults():
    assert normalize_options(ImageFormat.PNG) == {"compression_type": "default", "optimize": False}
    assert normalize_options(ImageFormat.JPEG) == {"quality": 90.0, "progressive": True}


@pytest.mark.parametrize(
    "target, options",
    [
        (ImageFormat.WEBP, {"quality": 101}),
        (ImageFormat.WEBP, {"quality": "high"}),
        (ImageFormat.WEBP, {"lossless": "yes"}),
        (ImageFormat.WEBP, {"method": 7}),
        (ImageFormat.PNG, {"compression_type": "extreme"}),
        (ImageFormat.JPEG, {"quality": -1}),
    ],
)
def test_invalid_options_are_rejected(target, options):
    with pytest.raises(EncodeError):
        normalize_options(target, options)


def test_unsupported_target_is_rejected():
    with pytest.raises(EncodeError):
        normalize_options(ImageFormat.GIF)


def test_webp_encoding(rgb_image):
    data = encode(rgb_image, ImageFormat.WEBP, normalize_options(ImageFormat.WEBP))
    assert data[:4] == b"RIFF" and data[8:12] == b"WEBP"


def test_webp_lossless_reproduces_pixels(rgb_image):
    data = encode(rgb_image, ImageFormat.WEBP, normalize_options(ImageFormat.WEBP, {"lossless": True}))
    with Image.open(io.BytesIO(data)) as decoded:
        assert decoded.convert("RGB").tobytes() == rgb_image.tobytes()


def test_webp_widens_luma_alpha():
    img = Image.new("LA", (8, 8), (120, 200))
    data = encode(img, ImageFormat.WEBP, normalize_options(ImageFormat.WEBP))
    with Image.open(io.BytesIO(data)) as decoded:
        assert decoded.mode == "RGBA"


def test_png_encoding(rgb_image):
    for compression in ("fast", "default", "best"):
        data = encode(rgb_image, ImageFormat.PNG, normalize_options(ImageFormat.PNG, {"compression_type": compression}))
        assert data[:8] == b"\x89PNG\r\n\x1a\n"


def test_jpeg_flattens_alpha():
    img = Image.new("RGBA", (8, 8), (10, 20, 30, 128))
    data = encode(img, ImageFormat.JPEG, normalize_options(ImageFormat.JPEG, {"quality": 80}))
    assert data[:3] == b"\xff\xd8\xff"
    with Image.open(io.BytesIO(data)) as decoded:
        assert decoded.mode == "RGB"


def test_lower_quality_is_smaller(rgb_image):
    high = encode(rgb_image, ImageFormat.JPEG, normalize_options(ImageFormat.JPEG, {"quality": 95}))
    low = encode(rgb_image, ImageFormat.JPEG, normalize_options(ImageFormat.JPEG, {"quality": 20}))
    assert len(low) < len(high)


@pytest.mark.skipif(not features.check("avif"), reason="Pillow built without AVIF support")
def test_avif_encoding(rgb_image):
    options = normalize_options(ImageFormat.AVIF, {"quality": 70, "speed": 8, "subsampling": "4:4:4"})
    data = encode(rgb_image, ImageFormat.AVIF, options)
    assert data[4:8] == b"ftyp"


def test_encoder_info_mentions_library_and_options():
    info = encoder_info(ImageFormat.WEBP, {"quality": 80.0, "lossless": False})
    assert "Pillow" in info
    assert "quality: 80.0" in info


def test_jpeg_composites_transparency_onto_white():
    img = Image.new("RGBA", (32, 32), (255, 0, 0, 0))
    img.putpixel((0, 0), (0, 0, 255, 255))
    data = encode(img, ImageFormat.JPEG, normalize_options(ImageFormat.JPEG, {"quality": 95}))
    with Image.open(io.BytesIO(data)) as decoded:
        r, g, b = decoded.getpixel((24, 24))
    assert min(r, g, b) > 240
