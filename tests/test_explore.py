import numpy as np
import PIL.Image
import pytest

import explore
from mandelview import ExplorerSession, MouseButton


def _parse(*argv):
    parser = explore.build_parser()
    return parser, parser.parse_args(list(argv))


def test_parse_size():
    assert explore.parse_size("640x480") == (640, 480)
    assert explore.parse_size("32X24") == (32, 24)
    for bad in ("640", "axb", "-1x5"):
        with pytest.raises(ValueError):
            explore.parse_size(bad)


def test_parse_select_event():
    assert explore.parse_event("select:80,60,240,180") == [
        ("pointer_down", 80, 60, MouseButton.LEFT),
        ("pointer_move", 240, 180),
        ("pointer_up", 240, 180, MouseButton.LEFT),
    ]


def test_parse_reset_and_resize_events():
    assert explore.parse_event("reset") == [("pointer_up", 0, 0, MouseButton.RIGHT)]
    assert explore.parse_event("resize:64,48") == [("resize", 64, 48)]


@pytest.mark.parametrize("bad", ["select:1,2,3", "reset:1", "resize:10", "resize:-1,5", "pan:1,2", "select:a,b,c,d"])
def test_parse_event_rejects_bad_input(bad):
    with pytest.raises(ValueError):
        explore.parse_event(bad)


def test_default_output_is_png_image(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    parser, opt = _parse()
    config = explore.resolve_output_config(opt, parser)

    assert config.modes == ("image",)
    assert config.image_path == (tmp_path / "mandelbrot.png").resolve()
    assert config.gif_path is None


def test_output_suffix_follows_format(tmp_path):
    parser, opt = _parse("--format", "JPG", "--output", str(tmp_path / "view"))
    config = explore.resolve_output_config(opt, parser)
    assert config.image_path == (tmp_path / "view.jpg").resolve()


def test_mismatched_suffix_is_an_error(tmp_path):
    parser, opt = _parse("--output", str(tmp_path / "view.jpg"))
    with pytest.raises(SystemExit):
        explore.resolve_output_config(opt, parser)


def test_gif_output_requires_gif_suffix(tmp_path):
    parser, opt = _parse("--mode", "gif", "--output", str(tmp_path / "movie.png"))
    with pytest.raises(SystemExit):
        explore.resolve_output_config(opt, parser)


def test_unknown_mode_is_an_error():
    parser, opt = _parse("--mode", "frames")
    with pytest.raises(SystemExit):
        explore.resolve_output_config(opt, parser)


def test_both_modes_use_output_directory(tmp_path):
    parser, opt = _parse("--mode", "gif", "--mode", "image", "--mode", "gif", "--output", str(tmp_path))
    config = explore.resolve_output_config(opt, parser)

    assert config.modes == ("gif", "image")
    assert config.gif_path == (tmp_path / "explore.gif").resolve()
    assert config.image_path == (tmp_path / "mandelbrot.png").resolve()


def test_compose_view_scales_framebuffer():
    session = ExplorerSession()
    session.on_resize(16, 12)
    image = explore.compose_view(session, (32, 24))

    assert image.size == (32, 24)
    assert image.getpixel((0, 0)) == session.framebuffer.pixel(0, 0)


def test_compose_view_outlines_selection():
    session = ExplorerSession()
    session.on_resize(32, 24)
    session.on_pointer_down(4, 4, MouseButton.LEFT)
    session.on_pointer_move(20, 16)
    image = explore.compose_view(session, (32, 24))

    assert image.getpixel((4, 4)) == explore.SELECTION_COLOR
    assert image.getpixel((20, 16)) == explore.SELECTION_COLOR


def test_compose_view_without_framebuffer_is_blank():
    image = explore.compose_view(ExplorerSession(), (10, 8))
    assert image.size == (10, 8)
    assert image.getextrema() == ((0, 0), (0, 0), (0, 0))


def test_main_writes_final_image(tmp_path):
    output = tmp_path / "zoomed.png"
    explore.main([
        "--width", "32", "--height", "24",
        "--event", "select:8,6,24,18",
        "--event", "select:0,0,0,10",
        "--output", str(output),
    ])

    with PIL.Image.open(output) as image:
        assert image.size == (32, 24)
        assert image.mode == "RGB"


def test_main_writes_gif_frames(tmp_path):
    output = tmp_path / "session.gif"
    explore.main([
        "--width", "16", "--height", "12",
        "--widget-size", "32x24",
        "--event", "select:4,3,12,9",
        "--event", "reset",
        "--mode", "gif",
        "--output", str(output),
    ])

    with PIL.Image.open(output) as image:
        assert image.size == (32, 24)
        assert image.n_frames == 3


def test_main_rejects_bad_event(tmp_path):
    with pytest.raises(SystemExit):
        explore.main(["--event", "zoom:1", "--output", str(tmp_path / "x.png")])


def test_main_rejects_zero_widget(tmp_path):
    with pytest.raises(SystemExit):
        explore.main(["--widget-size", "0x10", "--output", str(tmp_path / "x.png")])
