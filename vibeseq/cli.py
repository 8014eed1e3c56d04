"""
Command line front end for vibeseq

    vibeseq modes
    vibeseq generate --mode perlin --rows 5 --cols 16 --seed 0.3 [--save]
    vibeseq play --mode sine --cols 8 --duration 500 --loops 2
    vibeseq play --playlist sequences.json --auto-advance
    vibeseq text "slow gentle waves" --duration 2000
    vibeseq bridge --port 8765
"""

import argparse
import logging
import os
import sys
import threading
from typing import List, Optional

import numpy as np

from .actuator import ConsoleSink, DeviceSession
from .bridge import BridgeServer, serve_bridge
from .chain_controller import ChainController
from .generators import PatternMode, generate
from .movement import MovementController, intensities_to_levels
from .preferences_manager import PreferencesManager
from .scheduler import LoopComplete
from .sequence import SequenceModel

logger = logging.getLogger(__name__)


def render_grid(levels: List[int], row_count: int) -> str:
    """Draw levels as a text grid, top row = highest level"""
    lines = []
    for row in range(row_count - 1, -1, -1):
        lines.append(''.join('#' if level == row else '.' for level in levels))
    return '\n'.join(lines)


def _rng(args) -> Optional[np.random.Generator]:
    if args.rng_seed is None:
        return None
    return np.random.default_rng(args.rng_seed)


def cmd_modes(args, prefs: PreferencesManager) -> int:
    for mode in PatternMode:
        print(mode.value)
    return 0


def cmd_generate(args, prefs: PreferencesManager) -> int:
    rows = args.rows or prefs.get('default_row_count')
    cols = args.cols or prefs.get('default_column_count')
    levels = generate(args.mode, rows, cols, seed=args.seed, rng=_rng(args))
    print(levels)
    print(render_grid(levels, rows))

    if args.save:
        path = prefs.get_playlist_path()
        controller = ChainController(DeviceSession())
        if os.path.exists(path):
            controller.load_playlist(path)
        duration = args.duration or prefs.get('default_step_duration_ms')
        controller.add(SequenceModel(levels, duration, rows))
        controller.save_playlist(path)
        print(f"Saved as sequence {len(controller) - 1} in {path}")
    prefs.set('last_pattern_mode', str(args.mode))
    return 0


def cmd_play(args, prefs: PreferencesManager) -> int:
    sink = ConsoleSink(linear=not args.vibrate, vibrate=True, echo=print)
    with DeviceSession(sink, name="console") as session:
        controller = ChainController(session, auto_advance=args.auto_advance)

        if args.playlist:
            controller.load_playlist(args.playlist)
        else:
            rows = args.rows or prefs.get('default_row_count')
            cols = args.cols or prefs.get('default_column_count')
            model = SequenceModel.create(cols, rows)
            model.set_duration(args.duration or prefs.get('default_step_duration_ms'))
            model.regenerate(args.mode, seed=args.seed, rng=_rng(args))
            controller.add(model)

        if len(controller) == 0:
            print("Playlist is empty")
            return 1
        if not 0 <= args.start < len(controller):
            print(f"--start must be between 0 and {len(controller) - 1}")
            return 1

        done = threading.Event()
        loops = {'count': 0}

        def on_loop(event: LoopComplete):
            loops['count'] += 1
            if not args.auto_advance and loops['count'] >= args.loops:
                done.set()

        controller.scheduler.add_loop_listener(on_loop)
        controller.activate(args.start)
        try:
            while not done.wait(0.1):
                if not controller.is_playing:
                    break
        except KeyboardInterrupt:
            pass
        controller.stop()
    return 0


def cmd_text(args, prefs: PreferencesManager) -> int:
    controller = MovementController(
        api_url=args.url or prefs.get('llm_api_url'),
        model=args.model or prefs.get('llm_model'),
        timeout=prefs.get('llm_timeout_s'),
    )
    intensities = controller.generate_movement_sequence(args.description, args.duration)
    rows = args.rows or prefs.get('default_row_count')
    levels = intensities_to_levels(intensities, rows)
    print(' '.join(f"{v:.2f}" for v in intensities))
    print(render_grid(levels, rows))
    return 0


def cmd_bridge(args, prefs: PreferencesManager) -> int:
    sink = ConsoleSink(linear=True, vibrate=False, echo=print)
    with DeviceSession(sink, name="bridge") as session:
        server = BridgeServer(session, args.host, args.port or prefs.get('bridge_port'),
                              args.move_ms or prefs.get('bridge_move_ms'))
        serve_bridge(session, server=server)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vibeseq", description="Haptic pattern sequencer")
    parser.add_argument("--config-dir", default=None, help="Preferences directory (default: platform config dir)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("modes", help="List pattern modes")
    p.set_defaults(func=cmd_modes)

    def grid_args(p):
        p.add_argument("--mode", default="sine", help="Pattern mode (see 'modes')")
        p.add_argument("--rows", type=int, default=0, help="Number of levels (0=preference)")
        p.add_argument("--cols", type=int, default=0, help="Number of steps (0=preference)")
        p.add_argument("--seed", type=float, default=None, help="Pattern seed in [0, 1)")
        p.add_argument("--rng-seed", type=int, default=None, help="Random source seed for repeatable output")
        p.add_argument("--duration", type=int, default=0, help="Step duration in ms (0=preference)")

    p = sub.add_parser("generate", help="Generate and print a pattern")
    grid_args(p)
    p.add_argument("--save", action="store_true", help="Append the pattern to the saved playlist")
    p.set_defaults(func=cmd_generate)

    p = sub.add_parser("play", help="Play a pattern or playlist on the console sink")
    grid_args(p)
    p.add_argument("--playlist", default="", help="Playlist JSON file to play instead of a generated pattern")
    p.add_argument("--start", type=int, default=0, help="Playlist index to start from")
    p.add_argument("--loops", type=int, default=1, help="Loops to play without auto-advance")
    p.add_argument("--auto-advance", action="store_true", help="Advance through the playlist and stop at its end")
    p.add_argument("--vibrate", action="store_true", help="Simulate a vibrate-only device")
    p.set_defaults(func=cmd_play)

    p = sub.add_parser("text", help="Generate movement from a description")
    p.add_argument("description")
    p.add_argument("--duration", type=int, default=2000, help="Total duration in ms")
    p.add_argument("--rows", type=int, default=0, help="Number of levels for the grid view")
    p.add_argument("--url", default="", help="Language model endpoint")
    p.add_argument("--model", default="", help="Language model name")
    p.set_defaults(func=cmd_text)

    p = sub.add_parser("bridge", help="Relay sensor position lines to the console sink")
    p.add_argument("--host", default="0.0.0.0")
    p.add_argument("--port", type=int, default=0, help="TCP port (0=preference)")
    p.add_argument("--move-ms", type=int, default=0, help="Linear move duration (0=preference)")
    p.set_defaults(func=cmd_bridge)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    prefs = PreferencesManager(config_dir=args.config_dir)
    return args.func(args, prefs)


if __name__ == '__main__':
    sys.exit(main())
