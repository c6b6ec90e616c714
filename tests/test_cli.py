import cv2
import numpy as np

from asciiplayer.cli import build_parser, main


def _write_png(path) -> None:
    bgr = np.zeros((2, 2, 3), dtype=np.uint8)
    bgr[1] = 255
    assert cv2.imwrite(str(path), bgr)


def test_image_is_written_to_output(tmp_path):
    image = tmp_path / "split.png"
    output = tmp_path / "split.txt"
    _write_png(image)

    code = main([str(image), "--step", "1", "--chars", "@ ", "--output", str(output)])

    assert code == 0
    assert output.read_text(encoding="utf-8") == "@@\n  \n"


def test_invert_and_columns(tmp_path):
    image = tmp_path / "split.png"
    output = tmp_path / "split.txt"
    _write_png(image)

    code = main([str(image), "--columns", "1", "--chars", "@ ", "--invert", "--output", str(output)])

    assert code == 0
    # A single 2x2 block averages 127.5, which stays above the 127 threshold once inverted.
    assert output.read_text(encoding="utf-8") == " \n"


def test_missing_source_reports_failure(tmp_path):
    assert main([str(tmp_path / "missing.png")]) == 1


def test_bad_config_reports_failure(tmp_path):
    config = tmp_path / "player.yaml"
    config.write_text("AsciiPlayer:\n  step: 0\n", encoding="utf-8")
    assert main(["photo.png", "--config", str(config)]) == 2


def test_parser_leaves_unset_options_empty():
    args = build_parser().parse_args(["clip.mp4"])
    assert args.step is None
    assert args.invert is None
    assert args.loop is None
    assert build_parser().parse_args(["clip.mp4", "--no-loop"]).loop is False
