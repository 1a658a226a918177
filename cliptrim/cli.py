"""Thin CLI entry point: builds a session, trims the clips and uploads them."""

import argparse
import logging
import sys
from pathlib import Path

from cliptrim.durations import parse_clock
from cliptrim.errors import ClipTrimError
from cliptrim.manifest import Manifest, load_manifest
from cliptrim.models import ProgressUpdate, SiteMode
from cliptrim.session import TrimmerSession


def parse_clip(text: str) -> tuple[float, float]:
    """Parse ``START-END`` where each side is ``SS``, ``MM:SS`` or ``HH:MM:SS``."""
    start, sep, end = text.partition("-")
    if not sep:
        raise argparse.ArgumentTypeError(f"Clip must look like START-END, got {text!r}")
    try:
        return parse_clock(start), parse_clock(end)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cliptrim",
        description="cliptrim: cut clips out of a video and upload them.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    proc = sub.add_parser("process", help="Trim clips out of a video file")
    proc.add_argument("video", type=Path, help="Input video file (MP4 or WebM)")
    proc.add_argument("--manifest", "-m", type=Path, help="Path to a JSON manifest file")
    proc.add_argument(
        "--clip", "-c", type=parse_clip, action="append", default=[],
        help="Clip range START-END, e.g. 0:10-0:45 (repeatable)",
    )
    proc.add_argument("--split", type=int, default=0, help="Add N clip markers by splitting")
    proc.add_argument("--site-mode", choices=[m.value for m in SiteMode], help="Artifact naming")
    proc.add_argument("--output-dir", "-o", type=Path, help="Write clips here instead of uploading")

    serve = sub.add_parser("serve", help="Launch the web API")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")
    serve.add_argument("--manifest", "-m", type=Path, help="Path to a JSON manifest file")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO, format="%(message)s"
    )

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    manifest = load_manifest(args.manifest) if args.manifest else Manifest()

    if args.command == "serve":
        from cliptrim.web import create_app
        app = create_app(manifest=manifest)
        print(f"cliptrim web API: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False)
        return

    if args.site_mode:
        manifest.site_mode = SiteMode(args.site_mode)

    try:
        run(args, manifest)
    except ClipTrimError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def run(args: argparse.Namespace, manifest: Manifest) -> None:
    # No UI to show the success state, so reset immediately.
    session = TrimmerSession(manifest=manifest, scheduler=lambda delay, fn: fn())
    try:
        process(session, args)
    finally:
        session.engine.close()


def process(session: TrimmerSession, args: argparse.Namespace) -> None:
    source = session.open_media(args.video)

    if args.clip:
        session.timeline.remove(0)
        for start, end in args.clip:
            session.timeline.add(start, end)
    for _ in range(args.split):
        session.add_marker()

    def on_progress(update: ProgressUpdate) -> None:
        print(f"  [{update.percent:3d}%] {update.message}")

    artifacts = session.trim(on_progress=on_progress)

    if session.manifest.target is None or args.output_dir:
        out_dir = args.output_dir or source.path.with_name(source.path.stem + "_clips")
        out_dir.mkdir(parents=True, exist_ok=True)
        print()
        for artifact in artifacts:
            path = out_dir / artifact.filename
            path.write_bytes(artifact.data)
            print(f"  {path}  ({artifact.duration_label})")
        session.close()
        return

    outcome = session.submit(on_progress=on_progress)
    print()
    print(f"Done! Uploaded {outcome.uploaded} clip(s).")
    for record in outcome.records:
        print(f"  {record.id}: {record.name}")
