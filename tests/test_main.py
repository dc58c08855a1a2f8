import base64
import logging
import sys

import pytest

from conftest import open_png
from watermark_kit import main as cli


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("watermark_kit")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()


def run_cli(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["watermark-kit", *argv])
    cli.main()


def test_apply_writes_png(tmp_path, monkeypatch, png_800x600):
    source = tmp_path / "photo.png"
    source.write_bytes(png_800x600)
    output = tmp_path / "out" / "watermarked-image.png"

    run_cli(monkeypatch, "apply", "-i", str(source), "-t", "SAMPLE", "-o", str(output))

    assert output.exists()
    assert open_png(output.read_bytes()).size == (800, 600)


def test_apply_default_output_name(tmp_path, monkeypatch, png_800x600):
    source = tmp_path / "photo.png"
    source.write_bytes(png_800x600)
    monkeypatch.chdir(tmp_path)

    run_cli(monkeypatch, "apply", "-i", str(source), "--quiet")

    assert (tmp_path / "watermarked-image.png").exists()


def test_apply_data_url(tmp_path, monkeypatch, capsys, make_png):
    source = tmp_path / "photo.png"
    source.write_bytes(make_png(120, 80))

    run_cli(monkeypatch, "apply", "-i", str(source), "--data-url", "--style", "soft", "--quiet")

    url = capsys.readouterr().out.strip()
    assert url.startswith("data:image/png;base64,")
    png = base64.b64decode(url.split(",", 1)[1])
    assert open_png(png).size == (120, 80)


def test_non_image_file_exits_with_error(tmp_path, monkeypatch, capsys):
    source = tmp_path / "notes.txt"
    source.write_text("hello")

    with pytest.raises(SystemExit) as exc:
        run_cli(monkeypatch, "apply", "-i", str(source))

    assert exc.value.code == 1
    assert "valid image file" in capsys.readouterr().err


def test_corrupt_image_exits_with_error(tmp_path, monkeypatch, capsys):
    source = tmp_path / "broken.png"
    source.write_bytes(b"not really a png")

    with pytest.raises(SystemExit) as exc:
        run_cli(monkeypatch, "apply", "-i", str(source), "--quiet")

    assert exc.value.code == 1
    assert "Failed to load the image" in capsys.readouterr().err


def test_missing_input_exits_with_error(tmp_path, monkeypatch):
    with pytest.raises(SystemExit) as exc:
        run_cli(monkeypatch, "apply", "-i", str(tmp_path / "nope.png"))
    assert exc.value.code == 1


def test_no_command_prints_help(monkeypatch):
    with pytest.raises(SystemExit) as exc:
        run_cli(monkeypatch)
    assert exc.value.code == 1


def test_log_file_receives_debug_output(tmp_path, monkeypatch, png_800x600):
    source = tmp_path / "photo.png"
    source.write_bytes(png_800x600)
    log_file = tmp_path / "logs" / "run.log"

    run_cli(
        monkeypatch,
        "apply", "-i", str(source), "-o", str(tmp_path / "o.png"),
        "--log-file", str(log_file), "--quiet",
    )

    content = log_file.read_text()
    assert "Metrics for 800x600" in content
    assert "Watermark applied" in content
