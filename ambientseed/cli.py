from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path

from rich.console import Console
from rich.table import Table

from .audio import write_wav
from .config import DEFAULT_BASE_FREQUENCY, DEFAULT_DURATION, SessionConfig
from .events import NoteEvent
from .logging_utils import configure_logging, debug_enabled, log_exception
from .mirror import EXPORT_WINDOW_SECONDS, OfflineExporter, snapshot_session
from .playback import DeviceRenderer, StreamingMixer
from .player import Player
from .rng import SeededRNG, derive_seed, seed_string
from .scheduler import STOP_FADE_SECONDS, Clock, CollectingRenderer, ToneRenderer
from .session import now_ms
from .spinner import Spinner, render_error
from .synth import SAMPLE_RATE, OfflineBufferRenderer, render_events

_LOGGER = logging.getLogger("ambientseed.cli")
_CONSOLE = Console()
_POLL_SECONDS = 0.2


def _add_session_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--tone", type=float, default=DEFAULT_BASE_FREQUENCY, help="Base Hz.")
    parser.add_argument(
        "--duration",
        type=str,
        default=DEFAULT_DURATION,
        choices=["60", "300", "600", "1800", "infinite"],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ambientseed")
    sub = parser.add_subparsers(dest="command", required=True)

    play = sub.add_parser("play", help="Play a generative session live.")
    _add_session_arguments(play)
    play.add_argument("--dry-run", action="store_true", help="Print notes instead of sound.")
    play.add_argument("--record", type=str, default=None, help="Render the session to a wav.")
    play.add_argument("--timestamp-ms", type=int, default=None, help="Replay a past session.")
    play.add_argument(
        "--export", type=str, default=None, help="Write the played session's first minute to a wav."
    )

    export = sub.add_parser("export", help="Render a session's first minute offline.")
    _add_session_arguments(export)
    export.add_argument("--timestamp-ms", type=int, default=None)
    export.add_argument("--window", type=float, default=EXPORT_WINDOW_SECONDS)
    export.add_argument("--output", type=str, default=None, help="Wav path.")
    export.add_argument("--events-json", type=str, default=None, help="Note list path.")

    seed = sub.add_parser("seed", help="Show the seed and first draws for a session.")
    _add_session_arguments(seed)
    seed.add_argument("--timestamp-ms", type=int, default=None)
    seed.add_argument("--draws", type=int, default=3)
    return parser


def _print_note(event: NoteEvent, mix_level: float) -> None:
    _CONSOLE.print(
        f"{event.start_time:8.2f}s  {event.kind:<11} {event.frequency:8.2f} Hz  "
        f"step {event.phrase_step:>2}  dur {event.duration:5.2f}s  mix {mix_level:.2f}"
    )


def _wait_for_session(player: Player) -> None:
    try:
        with Spinner("Playing; press Ctrl+C to stop") as status:
            while player.scheduler.is_playing:
                status.follow(player.scheduler)
                time.sleep(_POLL_SECONDS)
    except KeyboardInterrupt:
        player.stop()
        time.sleep(STOP_FADE_SECONDS)


def _export_played(player: Player, output: str) -> None:
    with Spinner("Mirroring session") as status:
        result = player.trigger_export().result()
        status.show("Rendering audio")
        audio = render_events(result.events, result.mix_levels, seconds=result.buffer_seconds)
        path = write_wav(output, audio)
    _CONSOLE.print(f"Wrote export to {path} (sr={SAMPLE_RATE}, seed={result.snapshot.seed})")


def _run_play(args: argparse.Namespace) -> int:
    recorder: OfflineBufferRenderer | None = None
    device: DeviceRenderer | None = None
    clock: Clock | None = None
    renderer: ToneRenderer
    if args.dry_run:
        renderer = CollectingRenderer(on_event=_print_note)
    elif args.record:
        recorder = OfflineBufferRenderer()
        renderer = recorder
    else:
        mixer = StreamingMixer()
        # Surface a missing or busy device before the session starts.
        mixer.open()
        device = DeviceRenderer(mixer)
        renderer = device
        clock = mixer

    player = Player(renderer, clock=clock)
    try:
        snapshot = player.start(args.tone, args.duration, timestamp_ms=args.timestamp_ms)
        config = snapshot.config
        _CONSOLE.print(
            f"Session seed {snapshot.seed} ({config.duration}s at {config.base_frequency:.2f} Hz,"
            f" timestamp {snapshot.created_at_ms})"
        )
        _CONSOLE.print(
            f"Replay offline: ambientseed export --timestamp-ms {snapshot.created_at_ms}"
            f" --tone {config.base_frequency:g} --duration {config.duration}"
        )
        _wait_for_session(player)

        failure = player.scheduler.failure
        if failure is not None:
            raise failure
        if args.export:
            _export_played(player, args.export)
    finally:
        player.close()
        if device is not None:
            device.shutdown()

    if recorder is not None:
        with Spinner("Rendering recording"):
            path = write_wav(args.record, recorder.to_buffer())
        _CONSOLE.print(f"Wrote recording to {path} (sr={SAMPLE_RATE})")
    return 0


def _run_export(args: argparse.Namespace) -> int:
    config = SessionConfig(base_frequency=args.tone, duration=args.duration)
    snapshot = snapshot_session(config, timestamp_ms=args.timestamp_ms)
    with OfflineExporter(window=args.window) as exporter:
        with Spinner("Mirroring session"):
            result = exporter.submit(snapshot).result()

    if args.events_json:
        target = Path(args.events_json)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(result.to_json(), encoding="utf-8")
        _CONSOLE.print(f"Wrote {len(result.events)} notes to {target}")

    if args.output or not args.events_json:
        output = args.output or f"ambientseed-{snapshot.seed}.wav"
        with Spinner("Rendering audio"):
            audio = render_events(
                result.events, result.mix_levels, seconds=result.buffer_seconds
            )
            path = write_wav(output, audio)
        _CONSOLE.print(f"Wrote export to {path} (sr={SAMPLE_RATE}, seed={snapshot.seed})")
    return 0


def _run_seed(args: argparse.Namespace) -> int:
    config = SessionConfig(base_frequency=args.tone, duration=args.duration)
    timestamp_ms = now_ms() if args.timestamp_ms is None else args.timestamp_ms
    seed = derive_seed(timestamp_ms, config.base_frequency, config.duration)
    rng = SeededRNG(seed)

    source = seed_string(timestamp_ms, config.base_frequency, config.duration)
    table = Table(title=f"seed {seed} from {source!r}")
    table.add_column("#", justify="right")
    table.add_column("state", justify="right")
    table.add_column("draw", justify="right")
    for index in range(max(0, args.draws)):
        value = rng.next()
        table.add_row(str(index), str(rng.get_state()), f"{value:.10f}")
    _CONSOLE.print(table)
    return 0


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    try:
        parser = build_parser()
        args = parser.parse_args(argv)

        if args.command == "play":
            return _run_play(args)
        if args.command == "export":
            return _run_export(args)
        if args.command == "seed":
            return _run_seed(args)

        parser.print_help()
        return 1
    except Exception as exc:
        _LOGGER.warning("ambientseed CLI failed: %s", exc, exc_info=debug_enabled())
        log_exception("ambientseed CLI", exc)
        render_error("ambientseed CLI", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
