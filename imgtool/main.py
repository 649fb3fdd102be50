"""コマンドラインから画像仕上げパイプラインを実行するエントリポイント。"""

import argparse
import sys
import time
import traceback
from typing import Any, Dict, List, Optional

from . import __version__
from .components.config import load_config, load_default_config, merge_configs, validate_config
from .exceptions import ArgumentError, PipelineError
from .options import (
    DEFAULT_OPACITY,
    PipelineOptions,
    PipelineOptionsBuilder,
    parse_opacity,
)
from .pipeline import run_pipeline
from .reporting.summary import render_report
from .utils.logger import KVLogger, get_logger, setup_logging, shutdown_logging


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0: {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imgtool",
        description="Resize, watermark and re-encode a single image.",
    )
    parser.add_argument("input_file", help="Path to the source image.")
    parser.add_argument(
        "output_file",
        nargs="?",
        default=None,
        help="Path to the output image. If omitted, the input name plus --suffix is used.",
    )
    parser.add_argument("extra", nargs="*", help=argparse.SUPPRESS)
    parser.add_argument(
        "-V", "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "-v",
        action="count",
        dest="verbosity",
        default=0,
        help="Increase console debug message verbosity (repeatable).",
    )
    parser.add_argument(
        "--verbosity",
        type=int,
        dest="verbosity",
        metavar="N",
        help="Set console verbosity: 0 warnings, 1 info, 2 debug.",
    )
    parser.add_argument("-w", "--width", type=_non_negative_int, default=0, help="Output width of image.")
    parser.add_argument("-H", "--height", type=_non_negative_int, default=0, help="Output height of image.")
    parser.add_argument(
        "-p",
        "--pct-scale",
        type=float,
        default=None,
        metavar="N",
        help="Scale output to N percent of the original size; overrides --width/--height.",
    )
    parser.add_argument("-q", "--quality", type=int, default=None, help="Encoder quality 1-100 (default 85).")
    parser.add_argument(
        "-s",
        "--suffix",
        default=None,
        metavar="TEXT",
        help="Suffix appended to the file name of the edited file (default '_edited').",
    )
    parser.add_argument("-t", "--text", default=None, help="Watermark text.")
    parser.add_argument(
        "-o",
        "--opacity",
        default=None,
        metavar="N",
        help="Watermark opacity 0.0-1.0 (default 0.7).",
    )
    parser.add_argument(
        "-r",
        "--replicate",
        action="store_true",
        default=None,
        help="Tile the watermark across the whole image.",
    )
    parser.add_argument(
        "-n",
        "--no-op",
        action="store_true",
        help="Run everything but the final write and print the results only.",
    )
    parser.add_argument("-c", "--config", default=None, help="YAML file overriding the default settings.")
    parser.add_argument("--log-json", action="store_true", help="Output logs in JSON format.")
    parser.add_argument("--log-kv", action="store_true", help="Output logs in Key-Value pair format.")
    parser.add_argument("--log-file", default=None, help="Also write log records to this file.")
    return parser


def build_config(args: argparse.Namespace) -> Dict[str, Any]:
    """Defaults, then the --config file, then command-line flags."""
    config = load_default_config()
    if args.config:
        config = merge_configs(config, load_config(args.config))

    overrides: Dict[str, Any] = {"output": {}, "watermark": {}}
    if args.quality is not None:
        overrides["output"]["quality"] = args.quality
    if args.suffix is not None:
        overrides["output"]["suffix"] = args.suffix
    if args.replicate is not None:
        overrides["watermark"]["replicate"] = args.replicate
    return validate_config(merge_configs(config, overrides))


def build_options(args: argparse.Namespace, config: Dict[str, Any]) -> PipelineOptions:
    output_cfg = config.get("output") or {}
    watermark_cfg = config.get("watermark") or {}
    system_cfg = config.get("system") or {}

    builder = (
        PipelineOptionsBuilder(args.input_file)
        .output(args.output_file, output_cfg.get("suffix"))
        .size(args.width, args.height)
        .dry_run(args.no_op)
        .progress(bool(system_cfg.get("progress", False)))
    )
    if output_cfg.get("quality") is not None:
        builder.quality(output_cfg["quality"])
    if args.pct_scale is not None:
        builder.scale_percent(args.pct_scale)

    style = {
        key: watermark_cfg[key]
        for key in ("color", "font_path", "font_size", "dpi", "margin")
        if watermark_cfg.get(key) is not None
    }
    style["opacity"] = parse_opacity(
        watermark_cfg.get("opacity", DEFAULT_OPACITY), DEFAULT_OPACITY
    )
    builder.watermark_style(**style)
    if args.text is not None:
        builder.watermark(
            args.text,
            opacity=args.opacity,
            replicate=bool(watermark_cfg.get("replicate", False)),
        )
    elif args.opacity is not None or args.replicate:
        get_logger().warning("Watermark options given without --text; ignoring them")
    return builder.build()


def main(argv: Optional[List[str]] = None) -> int:
    """コマンドライン引数を解析しパイプラインを実行する。終了コードを返す。"""
    parser = build_parser()
    args = parser.parse_intermixed_args(argv)

    try:
        setup_logging(
            verbosity=args.verbosity,
            log_json=args.log_json,
            log_kv=args.log_kv,
            log_file=args.log_file,
        )
    except OSError as e:
        print(f"imgtool: cannot open log file: {e}", file=sys.stderr)
        return 2
    logger: KVLogger = get_logger()

    start_time = time.time()
    try:
        if args.verbosity:
            logger.info("Verbosity level: %d", args.verbosity)
        if args.extra:
            logger.info("Additional non-option ARGV-elements: %s", " ".join(args.extra))

        options = build_options(args, build_config(args))
        if args.verbosity > 1:
            logger.debug(options.describe())

        report = run_pipeline(options)
        print(render_report(report), end="")
        elapsed_time = time.time() - start_time
        logger.kv_info(
            f"Total execution time: {elapsed_time:.2f} seconds.",
            kv_pairs={"Event": "TotalExecutionTime", "Duration": f"{elapsed_time:.2f}s"},
        )
        return 0
    except ArgumentError as e:
        logger.kv_error(
            str(e),
            kv_pairs={
                "Event": "ArgumentError",
                "Message": e.message,
                "Line": e.line_number,
                "Column": e.column_number,
            },
        )
        return 2
    except PipelineError as e:
        logger.kv_error(
            str(e),
            kv_pairs={"Event": type(e).__name__, "Stage": e.stage, "Message": e.message},
        )
        logger.debug("Traceback:\n%s", traceback.format_exc())
        return 1
    except Exception as e:
        logger.kv_error(
            f"An unexpected error occurred: {e}",
            kv_pairs={
                "Event": "UnexpectedError",
                "Message": str(e),
                "Traceback": traceback.format_exc(),
            },
        )
        return 1
    finally:
        shutdown_logging()


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
