import logging
from pathlib import Path

import pytest
import yaml
from PIL import Image

from imgtool import __version__
from imgtool.main import build_config, build_options, build_parser, main


@pytest.fixture
def photo(tmp_path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "photo.png"
    Image.new("RGB", (1000, 800), (30, 60, 90)).save(path)
    return path


def _options(argv):
    args = build_parser().parse_intermixed_args(argv)
    return build_options(args, build_config(args))


def test_no_op_prints_report_and_writes_nothing(photo, tmp_path, capsys):
    code = main([str(photo), "-p", "50", "-n"])
    out = capsys.readouterr().out

    assert code == 0
    assert "***Display results only***" in out
    assert "Input file:        photo.png" in out
    assert "Output file:       photo_edited.png" in out
    assert "Output width:      500" in out
    assert "Output height:     400" in out
    assert "Output size:" in out
    assert "Size change:" in out
    assert not (tmp_path / "photo_edited.png").exists()


def test_writes_derived_output_with_suffix(photo, tmp_path, capsys):
    code = main([str(photo), "-s", "_small", "-w", "250", "-t", "hello", "-r"])
    assert code == 0
    written = tmp_path / "photo_small.png"
    assert written.exists()
    with Image.open(written) as img:
        assert img.size == (250, 200)
    assert "***Display results only***" not in capsys.readouterr().out


def test_explicit_output_after_options(photo, tmp_path):
    out = tmp_path / "final.png"
    assert main([str(photo), "-H", "80", str(out)]) == 0
    with Image.open(out) as img:
        assert img.size == (100, 80)


def test_missing_input_exits_non_zero(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert main([str(tmp_path / "nope.png")]) == 1
    assert capsys.readouterr().out == ""


def test_input_without_extension_is_argument_error(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main(["README"]) == 2


def test_missing_positional_exits_with_usage(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 2


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["-V"])
    assert excinfo.value.code == 0
    assert __version__ in capsys.readouterr().out


def test_defaults():
    options = _options(["in.jpg"])
    assert options.dimensions.quality == 85
    assert options.files.suffix == "_edited"
    assert options.watermark is None
    assert not options.dry_run


def test_watermark_defaults_and_overrides():
    options = _options(["in.jpg", "-t", "(c)"])
    assert options.watermark.text == "(c)"
    assert options.watermark.opacity == pytest.approx(0.7)
    assert options.watermark.replicate is False

    options = _options(["in.jpg", "-t", "(c)", "-o", "0.25", "-r"])
    assert options.watermark.opacity == pytest.approx(0.25)
    assert options.watermark.replicate is True


def test_opacity_is_clamped():
    assert _options(["in.jpg", "-t", "x", "-o", "3"]).watermark.opacity == 1.0
    assert _options(["in.jpg", "-t", "x", "-o", "-1"]).watermark.opacity == 0.0


def test_non_numeric_opacity_keeps_previous_value(caplog):
    with caplog.at_level(logging.WARNING, logger="imgtool"):
        options = _options(["in.jpg", "-t", "x", "-o", "strong"])
    assert options.watermark.opacity == pytest.approx(0.7)
    assert "Invalid opacity" in caplog.text


def test_empty_text_still_enables_watermark():
    options = _options(["in.jpg", "-t", ""])
    assert options.watermark is not None
    assert options.watermark.text == ""


def test_pct_scale_is_a_percentage():
    assert _options(["in.jpg", "-p", "50"]).dimensions.pct_scale == pytest.approx(0.5)


def test_verbosity_flags():
    parser = build_parser()
    assert parser.parse_intermixed_args(["a.jpg"]).verbosity == 0
    assert parser.parse_intermixed_args(["a.jpg", "-vv"]).verbosity == 2
    assert parser.parse_intermixed_args(["a.jpg", "--verbosity", "3"]).verbosity == 3


def test_negative_width_is_rejected():
    with pytest.raises(SystemExit):
        build_parser().parse_intermixed_args(["a.jpg", "-w", "-5"])


def test_config_file_is_merged_and_cli_wins(tmp_path):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text(
        yaml.safe_dump(
            {
                "output": {"suffix": "_cfg", "quality": 60},
                "watermark": {"opacity": 0.4, "color": "#ff0000", "replicate": True},
            }
        ),
        encoding="utf-8",
    )
    options = _options(["in.jpg", "-c", str(cfg), "-t", "x", "-q", "90"])
    assert options.files.suffix == "_cfg"
    assert options.dimensions.quality == 90
    assert options.watermark.opacity == pytest.approx(0.4)
    assert options.watermark.color == "#ff0000"
    assert options.watermark.replicate is True


def test_invalid_quality_in_config_is_argument_error(photo, tmp_path):
    cfg = tmp_path / "bad.yaml"
    cfg.write_text("output:\n  quality: 500\n", encoding="utf-8")
    assert main([str(photo), "-c", str(cfg), "-n"]) == 2


def test_log_file_receives_records(photo, tmp_path):
    log_path = tmp_path / "run.log"
    assert main([str(photo), "-n", "-v", "--log-kv", "--log-file", str(log_path)]) == 0
    text = log_path.read_text(encoding="utf-8")
    assert "Input dims: 1000 x 800" in text
    assert "[Event=TotalExecutionTime]" in text
