from pathlib import Path

from imgc.cli import build_parser, main, options_from_args
from imgc.conversion.models import ImageFormat


def test_parser_collects_format_options():
    args = build_parser().parse_args(["avif", "imgs/*.png", "-q", "70", "-s", "6", "--subsampling", "4:4:4"])
    assert args.command == "avif"
    assert options_from_args(ImageFormat.AVIF, args) == {"quality": 70.0, "speed": 6, "subsampling": "4:4:4"}


def test_parser_jpeg_baseline_turns_off_progressive():
    args = build_parser().parse_args(["jpeg", "imgs/*.png", "--baseline"])
    assert options_from_args(ImageFormat.JPEG, args) == {"progressive": False}


def test_convert_command_prints_report(src_tree, tmp_path, capsys):
    out = tmp_path / "out"
    code = main(["webp", str(src_tree / "**" / "*.png"), "-o", str(out), "--no-progress", "--workers", "2"])
    assert code == 0
    printed = capsys.readouterr().out
    assert "Encode statistics:" in printed
    assert "Successful:  3" in printed
    assert sorted(p.relative_to(out) for p in out.rglob("*.webp")) == [
        Path("a/1.webp"),
        Path("a/2.webp"),
        Path("b/1.webp"),
    ]


def test_convert_command_with_no_matches(tmp_path, capsys):
    code = main(["png", str(tmp_path / "*.jpg"), "--no-progress"])
    assert code == 0
    assert "No images to convert" in capsys.readouterr().out


def test_invalid_pattern_exits_with_error(tmp_path):
    assert main(["webp", str(tmp_path / "[bad"), "--no-progress"]) == 1


def test_invalid_option_exits_with_error(tmp_path):
    assert main(["webp", str(tmp_path / "*.png"), "-q", "150", "--no-progress"]) == 1


def test_clean_command(tmp_path, capsys):
    (tmp_path / "x.webp").write_bytes(b"1234")
    assert main(["clean", str(tmp_path / "*.webp")]) == 0
    assert "Deleted 1 files" in capsys.readouterr().out
    assert not (tmp_path / "x.webp").exists()
