import os
import sys
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

_VERBOSE_FLAGS = {"--verbose", "-v"}
_cli_verbose = any(arg in _VERBOSE_FLAGS for arg in sys.argv[1:])
_env_log_level = os.environ.get("TF_CPP_MIN_LOG_LEVEL")
_suppress_messages = (not _cli_verbose) and _env_log_level != "0"

if _suppress_messages and _env_log_level is None:
    os.environ["TF_CPP_MIN_LOG_LEVEL"] = "3"

if _suppress_messages:
    warnings.filterwarnings(
        "ignore",
        message=r"Protobuf gencode version .* is exactly one major version older than the runtime version .*",
        category=UserWarning,
        module="google.protobuf",
    )

import tensorflow as tf
import numpy as np

if _suppress_messages:
    tf.get_logger().setLevel("ERROR")
    for handler in tf.get_logger().handlers:
        handler.setLevel("ERROR")

import PIL.Image
import PIL.ImageDraw
import PIL.ImageFont
import imageio

from mandelview import MAX_ITERATIONS, ExplorerSession, MouseButton, Viewport
from mandelview.log import log, set_verbose

from argparse import ArgumentParser

DEFAULT_WIDTH = 640
DEFAULT_HEIGHT = 480
SELECTION_COLOR = (0, 0, 255)


def detect_device() -> str:
    """Place the computation on the first visible GPU, falling back to the CPU."""

    gpus = tf.config.list_physical_devices('GPU')
    if not gpus:
        log("No GPU found, using CPU")
        return '/CPU:0'
    try:
        for gpu in gpus:
            tf.config.experimental.set_memory_growth(gpu, True)
    except RuntimeError as e:
        log(e)
        return '/CPU:0'
    log("GPU found, using %s" % gpus[0].name)
    return '/GPU:0'


@dataclass
class OutputConfig:
    modes: tuple[str, ...]
    gif_path: Path | None
    image_path: Path | None
    image_format: str


def parse_size(text: str) -> tuple[int, int]:
    """Parse ``WIDTHxHEIGHT`` into a pair of non-negative integers."""

    parts = text.lower().split("x")
    if len(parts) != 2:
        raise ValueError(f"expected WIDTHxHEIGHT, got '{text}'")
    width, height = (int(part) for part in parts)
    if width < 0 or height < 0:
        raise ValueError(f"size must be non-negative, got '{text}'")
    return width, height


def parse_event(text: str) -> list[tuple[Any, ...]]:
    """Translate one ``--event`` value into the host callbacks it stands for.

    ``select:X0,Y0,X1,Y1`` is a left-button drag, ``reset`` a right click and
    ``resize:W,H`` a surface resize.
    """

    name, _, arguments = text.partition(":")
    name = name.strip().lower()
    values = [int(value) for value in arguments.split(",")] if arguments.strip() else []

    if name == "select":
        if len(values) != 4:
            raise ValueError(f"select expects four coordinates, got '{text}'")
        x0, y0, x1, y1 = values
        return [
            ("pointer_down", x0, y0, MouseButton.LEFT),
            ("pointer_move", x1, y1),
            ("pointer_up", x1, y1, MouseButton.LEFT),
        ]
    if name == "reset":
        if values:
            raise ValueError(f"reset takes no arguments, got '{text}'")
        return [("pointer_up", 0, 0, MouseButton.RIGHT)]
    if name == "resize":
        if len(values) != 2 or min(values) < 0:
            raise ValueError(f"resize expects two non-negative sizes, got '{text}'")
        return [("resize", values[0], values[1])]
    raise ValueError(f"unknown event '{name}'")


def build_parser():
    parser = ArgumentParser(description="Render and explore the Mandelbrot set by replaying zoom gestures.")

    parser.add_argument('--width', type=int,
                        dest='width', help='framebuffer width in pixels',
                        metavar='WIDTH', default=DEFAULT_WIDTH)

    parser.add_argument('--height', type=int,
                        dest='height', help='framebuffer height in pixels',
                        metavar='HEIGHT', default=DEFAULT_HEIGHT)

    parser.add_argument('--widget-size', type=str,
                        dest='widget_size', help='size the framebuffer is scaled to when presented, as WIDTHxHEIGHT. Defaults to the framebuffer size.',
                        metavar='WxH', default=None)

    parser.add_argument('--max-iterations', type=int,
                        dest='max_iterations', help='maximum number of iterations before a point is considered inside the set',
                        metavar='MAX_ITERATIONS', default=MAX_ITERATIONS)

    parser.add_argument('--event', dest='events', action='append', metavar='EVENT', default=[],
                        help='Event to replay, in order. May be repeated. One of select:X0,Y0,X1,Y1, reset, resize:W,H.')

    parser.add_argument('--mode', dest='modes', action='append', metavar='MODE',
                        help='Output modes to generate. May be repeated. Choices: image, gif.')

    parser.add_argument('--output', dest='output', type=str,
                        help='Destination for a single output file, or container directory when both modes are requested.')

    parser.add_argument('--format', type=str,
                        dest='format', help='file format for the image output. Can be any extension supported by Pillow. Default: "png".',
                        metavar='FORMAT', default='png')

    parser.add_argument('--frame-duration', type=float, dest='frame_duration', default=0.5,
                        help='Seconds each event frame is shown in the GIF output.')

    parser.add_argument('--show-coordinates', help='overlay the viewport bounds on every presented view',
                        dest='show_coordinates', action='store_true')

    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose logging, including TensorFlow and hardware diagnostics.')

    return parser


def resolve_output_config(opt, parser: ArgumentParser) -> OutputConfig:
    valid_modes = {"image", "gif"}
    modes = opt.modes or ["image"]

    normalized_modes: list[str] = []
    for mode in modes:
        if mode not in valid_modes:
            parser.error(f"Unknown output mode '{mode}'. Valid choices: {', '.join(sorted(valid_modes))}.")
        if mode not in normalized_modes:
            normalized_modes.append(mode)
    modes_tuple = tuple(normalized_modes)

    image_format = (getattr(opt, "format", "png") or "png").lower().lstrip(".")
    if not image_format:
        image_format = "png"

    output_arg = getattr(opt, "output", None)
    gif_path: Path | None = None
    image_path: Path | None = None

    if len(modes_tuple) == 1:
        mode = modes_tuple[0]
        if output_arg:
            output_path = Path(output_arg).expanduser()
            if output_path.exists() and output_path.is_dir():
                parser.error("--output must point to a file, not a directory, when a single mode is active.")
            if mode == "gif":
                if output_path.suffix:
                    if output_path.suffix.lower() != ".gif":
                        parser.error("GIF outputs must end with .gif.")
                else:
                    output_path = output_path.with_suffix(".gif")
                gif_path = output_path.resolve()
            else:
                expected_suffix = f".{image_format}"
                if output_path.suffix:
                    if output_path.suffix.lower() != expected_suffix:
                        parser.error(f"--output extension {output_path.suffix} does not match --format {image_format}.")
                else:
                    output_path = output_path.with_suffix(expected_suffix)
                image_path = output_path.resolve()
        elif mode == "gif":
            gif_path = Path("explore.gif").resolve()
        else:
            image_path = Path(f"mandelbrot.{image_format}").resolve()
    else:
        base_dir = Path(output_arg).expanduser() if output_arg else Path.cwd()
        if base_dir.exists() and not base_dir.is_dir():
            parser.error("--output must be a directory when both image and gif modes are active.")
        gif_path = (base_dir / "explore.gif").resolve()
        image_path = (base_dir / f"mandelbrot.{image_format}").resolve()

    return OutputConfig(
        modes=modes_tuple,
        gif_path=gif_path,
        image_path=image_path,
        image_format=image_format,
    )


def _pil_format_name(ext: str) -> str:
    upper = ext.upper()
    if upper == "JPG":
        return "JPEG"
    if upper == "TIF":
        return "TIFF"
    return upper


def write_single_image(image: PIL.Image.Image, output_path: Path, image_format: str) -> None:
    """Write a single image to ``output_path`` using the provided format."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    image.save(str(output_path), format=_pil_format_name(image_format))


def write_gif(writer: Any, frame_array: np.ndarray) -> None:
    """Append ``frame_array`` to an active GIF writer."""

    writer.append_data(frame_array)


def _draw_text_with_shadow(
    draw: PIL.ImageDraw.ImageDraw,
    position: tuple[float, float],
    text: str,
    font: PIL.ImageFont.ImageFont,
    fill: tuple[int, int, int],
    *,
    shadow_fill: tuple[int, int, int] = (0, 0, 0),
    shadow_offset: tuple[int, int] = (1, 1),
) -> None:
    shadow_position = (position[0] + shadow_offset[0], position[1] + shadow_offset[1])
    draw.multiline_text(shadow_position, text, font=font, fill=shadow_fill)
    draw.multiline_text(position, text, font=font, fill=fill)


def annotate_with_bounds(image: PIL.Image.Image, viewport: Viewport) -> PIL.Image.Image:
    """Overlay the plane bounds of ``viewport`` in the top-left corner."""

    draw = PIL.ImageDraw.Draw(image)
    font = PIL.ImageFont.load_default()
    text = "\n".join(
        [
            f"X: [{viewport.x_start:.6g}, {viewport.x_end:.6g}]",
            f"Y: [{viewport.y_start:.6g}, {viewport.y_end:.6g}]",
        ]
    )
    _draw_text_with_shadow(draw, (6, 6), text, font, (255, 255, 255))
    return image


def compose_view(
    session: ExplorerSession,
    widget_size: tuple[int, int],
    *,
    show_coordinates: bool = False,
) -> PIL.Image.Image:
    """Present the session the way a host paints it.

    The framebuffer is scaled to ``widget_size`` and the in-progress
    selection, if any, is outlined on top.
    """

    framebuffer = session.framebuffer
    if framebuffer is None or not framebuffer.has_area():
        blank = True
        image = PIL.Image.new("RGB", widget_size, (0, 0, 0))
    else:
        blank = False
        image = framebuffer.to_image()
        if image.size != widget_size:
            image = image.resize(widget_size, PIL.Image.Resampling.NEAREST)

    selection = session.selection
    if selection is not None and not blank:
        sx = widget_size[0] / framebuffer.width
        sy = widget_size[1] / framebuffer.height
        draw = PIL.ImageDraw.Draw(image)
        draw.rectangle(
            [(selection.left * sx, selection.top * sy), (selection.right * sx, selection.bottom * sy)],
            outline=SELECTION_COLOR,
        )

    if show_coordinates:
        image = annotate_with_bounds(image, session.viewport)
    return image


def main(argv=None):
    parser = build_parser()
    opt = parser.parse_args(argv)

    output_config = resolve_output_config(opt, parser)
    set_verbose(opt.verbose)

    if opt.width < 0 or opt.height < 0:
        parser.error("--width and --height must be non-negative.")
    if opt.max_iterations <= 0:
        parser.error("--max-iterations must be positive.")

    try:
        widget_size = parse_size(opt.widget_size) if opt.widget_size else (opt.width, opt.height)
        steps = [parse_event(event) for event in opt.events]
    except ValueError as exc:
        parser.error(str(exc))
    if min(widget_size) <= 0:
        parser.error("The presented view must have a positive width and height.")

    session = ExplorerSession(max_iterations=opt.max_iterations, device=detect_device())
    session.on_resize(opt.width, opt.height)

    gif_writer = None
    if "gif" in output_config.modes:
        output_config.gif_path.parent.mkdir(parents=True, exist_ok=True)
        gif_writer = imageio.get_writer(str(output_config.gif_path), mode='I', duration=opt.frame_duration, loop=0)

    try:
        if gif_writer is not None:
            write_gif(gif_writer, np.asarray(compose_view(session, widget_size, show_coordinates=opt.show_coordinates)))
        for i, callbacks in enumerate(steps):
            print("event {0} out of {1}".format(i + 1, len(steps)), end='\r')
            for name, *args in callbacks:
                session.dispatch(name, *args)
            if gif_writer is not None:
                write_gif(gif_writer, np.asarray(compose_view(session, widget_size, show_coordinates=opt.show_coordinates)))
    finally:
        if gif_writer is not None:
            gif_writer.close()

    log("Final viewport: %s after %d renders" % (session.viewport.bounds, session.render_count))

    if "image" in output_config.modes:
        final_image = compose_view(session, widget_size, show_coordinates=opt.show_coordinates)
        write_single_image(final_image, output_config.image_path, output_config.image_format)


if __name__ == '__main__':
    main()
