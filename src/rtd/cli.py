from __future__ import annotations

import argparse
from pathlib import Path

_LAYOUTS = ["auto", "interleaved", "planar"]


def _add_model_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="Path to TOML/YAML/JSON config file")
    parser.add_argument("--model-name", help="Model name label for logs")
    parser.add_argument("--model-path", help="ONNX model path")
    parser.add_argument("--labels-path", help="Label file path (one class per line)")
    parser.add_argument("--resolution", type=int, help="Canonical model input size R (RxR)")
    parser.add_argument("--num-classes", type=int, help="Class count declared by the model")
    parser.add_argument("--layout", choices=_LAYOUTS, help="Raw output element ordering")
    parser.add_argument("--objectness", type=float, help="Objectness threshold")
    parser.add_argument("--score", type=float, help="Final score threshold")
    parser.add_argument("--iou", type=float, help="NMS IoU threshold")
    parser.add_argument(
        "--per-label-nms",
        action="store_true",
        default=None,
        help="Suppress overlaps within each label only",
    )
    parser.add_argument("--json-logs", action="store_true", default=None, help="Emit structured JSON logs")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rtd",
        description="Real-time object detection pipeline",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Stream image files through the detection pipeline")
    _add_model_args(run)
    run.add_argument("--uri", required=True, help="Image file or directory of images")
    run.add_argument("--queue-capacity", type=int, help="Frames held before drop-oldest eviction")
    run.add_argument("--rate-limit-fps", type=float, help="Sender pacing in frames per second (0 = as fast as possible)")
    run.add_argument("--inference-timeout", type=float, help="Per-frame inference deadline in seconds")
    run.add_argument("--annotate-dir", help="Write annotated JPEGs to this directory")
    run.add_argument("--event-file", help="Append per-frame JSON results to file")
    run.add_argument("--no-event-stdout", action="store_true", help="Disable per-frame JSON results on stdout")
    run.add_argument("--prometheus", action="store_true", default=None, help="Enable Prometheus metrics endpoint")
    run.add_argument("--prometheus-port", type=int, help="Prometheus bind port")
    run.add_argument(
        "--metrics-reset-after",
        type=int,
        help="Start a fresh latency epoch after this many results (e.g. to exclude warm-up); SIGUSR1 also resets",
    )

    decode = subparsers.add_parser("decode", help="Decode and suppress a saved raw output tensor (.npy)")
    _add_model_args(decode)
    decode.add_argument("--tensor", required=True, help="Path to .npy raw output tensor")
    decode.add_argument("--no-nms", action="store_true", help="Print raw decoded candidates")

    inspect = subparsers.add_parser("inspect", help="Print model inputs/outputs and a dummy-input test run")
    _add_model_args(inspect)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    repo_root = Path.cwd()

    if args.command == "run":
        from rtd.commands.run import run_pipeline

        return run_pipeline(args, repo_root)
    if args.command == "decode":
        from rtd.commands.decode import run_decode

        return run_decode(args, repo_root)
    if args.command == "inspect":
        from rtd.commands.inspect import run_inspect

        return run_inspect(args, repo_root)

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
