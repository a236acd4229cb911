from pathlib import Path

import pytest
from PIL import Image


def make_image(path: Path, fmt: str = "PNG", size=(32, 24), color=(200, 30, 30), mode: str = "RGB") -> Path:
    """Write a solid-color image in the given Pillow format."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new(mode, size, color).save(path, format=fmt)
    return path


def make_noise_image(path: Path, fmt: str = "PNG", size=(64, 48)) -> Path:
    """Write an image that does not compress well."""
    path.parent.mkdir(parents=True, exist_ok=True)
    img = Image.effect_noise(size, 80).convert("RGB")
    img.save(path, format=fmt)
    return path


@pytest.fixture
def src_tree(tmp_path):
    """src/a/1.png, src/a/2.png, src/b/1.png."""
    src = tmp_path / "src"
    make_image(src / "b" / "1.png")
    make_image(src / "a" / "2.png", color=(10, 200, 10))
    make_noise_image(src / "a" / "1.png")
    return src
