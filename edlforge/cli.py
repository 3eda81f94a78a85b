"""Thin CLI entry point — builds a Manifest and calls the engine."""

import argparse
import logging
import shlex
import signal
import sys
from pathlib import Path

from edlforge.analyzers.streams import NO_VIDEO_STREAM_MESSAGE, NoVideoStreamError
from edlforge.analyzers.timeline import PlanningError
from edlforge.engine import make_supervisor, process
from edlforge.ffutil import EncoderNotFoundError
from edlforge.manifest import EncoderConfig, Manifest, load_manifest, validate_encoder_config
from edlforge.progress import format_percent
from edlforge.supervisor import OutputMissingError, PhaseSupervisor, TranscodeTerminated

logger = logging.getLogger(__name__)

EXIT_ERROR = 1
# Reserved for "terminated by signal"; never used for ordinary failures.
EXIT_TERMINATED = 15


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def install_signal_handlers(supervisor: PhaseSupervisor) -> None:
    """Route SIGTERM/SIGINT to the supervisor so the live encoder is stopped."""

    def handle(signum, frame):
        logger.info("received signal %d", signum)
        supervisor.cancel()

    signal.signal(signal.SIGTERM, handle)
    signal.signal(signal.SIGINT, handle)


def _print_progress(percent: float) -> None:
    print(format_percent(percent), flush=True)


def run_manifest(manifest: Manifest) -> int:
    """Run *manifest*, printing progress, and return the process exit status."""
    supervisor = make_supervisor(manifest, on_progress=_print_progress)
    install_signal_handlers(supervisor)

    try:
        result = process(manifest, supervisor=supervisor)
    except TranscodeTerminated:
        print("Terminating", flush=True)
        return EXIT_TERMINATED
    except NoVideoStreamError as e:
        print(e.probe_text, file=sys.stderr)
        print(NO_VIDEO_STREAM_MESSAGE, file=sys.stderr)
        return EXIT_ERROR
    except OutputMissingError as e:
        print(str(e), file=sys.stderr)
        print(e.log_text, file=sys.stderr)
        return EXIT_ERROR
    except (PlanningError, EncoderNotFoundError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR

    if result.output_path is None:
        print("nothing to encode: the cut list removes the entire source", file=sys.stderr)
        return 0

    print(f"Done! Output: {result.output_path}", file=sys.stderr)
    print(
        f"  Duration: {result.duration_original:.1f}s -> {result.duration_final:.1f}s"
        f" in {result.segments_encoded} segment(s)",
        file=sys.stderr,
    )
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="edlforge",
        description="EDLForge — cut, segment-encode and concatenate a video with one progress signal.",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging on stderr")
    sub = parser.add_subparsers(dest="command")

    proc = sub.add_parser("process", help="Transcode a video file")
    proc.add_argument("video", nargs="?", type=Path, help="Input video file")
    proc.add_argument("--manifest", "-m", type=Path, help="Path to a JSON manifest file")
    proc.add_argument("--output", "-o", type=Path, help="Output file path")
    proc.add_argument("--edl", type=Path, help="Cut list: one 'start stop' pair (seconds) per line")
    proc.add_argument("--work-dir", type=Path, help="Working directory for logs and segments")
    proc.add_argument("--encoder", default="ffmpeg", help="Encoder executable")
    proc.add_argument("--pre-input", default="", help="Encoder flags placed before -i (quoted)")
    proc.add_argument("--encoder-args", default="", help="Encoder flags placed after -i (quoted)")
    proc.add_argument("--merge-start", type=float, default=98.0, help="Percent at which the concat phase starts")
    proc.add_argument("--poll-interval", type=float, default=3.0, help="Seconds between log polls")

    serve = sub.add_parser("serve", help="Launch the web UI")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "serve":
        from edlforge.web import create_app
        app = create_app()
        print(f"EDLForge web UI: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False, threaded=True)
        return

    try:
        if args.manifest:
            m = load_manifest(args.manifest)
        elif args.video:
            if args.output is None:
                print("Error: --output is required.", file=sys.stderr)
                sys.exit(EXIT_ERROR)
            encoder = EncoderConfig(
                path=args.encoder,
                merge_start_percent=args.merge_start,
                poll_interval=args.poll_interval,
            )
            validate_encoder_config(encoder)
            m = Manifest(
                input=args.video,
                output=args.output,
                cut_list=args.edl,
                work_dir=args.work_dir,
                pre_input_args=shlex.split(args.pre_input),
                post_input_args=shlex.split(args.encoder_args),
                encoder=encoder,
            )
        else:
            print("Error: provide either a VIDEO argument or --manifest.", file=sys.stderr)
            sys.exit(EXIT_ERROR)
    except (ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(EXIT_ERROR)

    if not m.input.is_file():
        print(f"no such file: {m.input}", file=sys.stderr)
        sys.exit(EXIT_ERROR)

    sys.exit(run_manifest(m))
