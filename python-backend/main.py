"""CLI entry point: write a song, critique it in the background and keep it in history."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path

from songsmith.agent.songwriter import DEFAULT_MODEL_NAME
from songsmith.errors import CreationFailure
from songsmith.models.song import FeatureFlags, SongInputs, StructureType
from songsmith.services.session import SessionController, create_session

log = logging.getLogger(__name__)

STRUCTURE_CHOICES = {t.name.lower(): t for t in StructureType}


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate a Suno-ready song (title, style, lyrics) and critique it."
    )
    parser.add_argument("--topic", "-t", type=str, default="", help="What the song is about.")
    parser.add_argument("--genre", "-g", type=str, default="", help="Genre or sub-genre.")
    parser.add_argument("--mood", type=str, default="", help="Mood of the song.")
    parser.add_argument("--vocals", type=str, default="", help="Preferred vocals.")
    parser.add_argument(
        "--instrument", "-i",
        action="append",
        default=[],
        help="Featured instrument (repeatable).",
    )
    parser.add_argument(
        "--structure",
        choices=sorted(STRUCTURE_CHOICES),
        default="auto",
        help="Song structure (default: auto).",
    )
    parser.add_argument("--artist", type=str, default="", help="Artist reference for style inference.")
    parser.add_argument("--song", type=str, default="", help="Song reference for style inference.")
    parser.add_argument("--syllables", type=str, default="", help="Syllable pattern or meter.")
    parser.add_argument("--instructions", type=str, default="", help="Extra instructions.")
    parser.add_argument(
        "--advanced",
        action="store_true",
        help="Enable advanced lyric logic (section headers, vocal cues, concrete imagery).",
    )
    parser.add_argument(
        "--metaphor",
        action="store_true",
        help="Enable central metaphor anchoring.",
    )
    parser.add_argument(
        "--variations",
        action="store_true",
        help="Also generate two alternative drafts.",
    )
    parser.add_argument(
        "--render",
        action="store_true",
        help="Submit the song to Suno and wait for the audio (needs SUNO_API_KEY).",
    )
    parser.add_argument(
        "--model", "-m",
        type=str,
        default=None,
        help=f"OpenRouter model ID (default: {DEFAULT_MODEL_NAME}).",
    )
    parser.add_argument("--mock", action="store_true", help="Use the mock songwriter (no API calls).")
    parser.add_argument("--list", action="store_true", help="List song history and exit.")
    parser.add_argument("--clear", action="store_true", help="Clear song history and exit.")
    parser.add_argument("--yes", "-y", action="store_true", help="Confirm --clear.")
    parser.add_argument(
        "--history-dir",
        type=str,
        default=None,
        help="History directory (default: $SONGSMITH_HISTORY_DIR or ~/.songsmith).",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log session steps to stderr.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log full prompts and raw model responses.",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Output directory (default: outputs/YYYY-MM-DD/HH-MM-SS).",
    )
    return parser.parse_args()


def setup_output_dir(custom_dir: str | None = None) -> Path:
    """Create output directory with timestamp."""
    if custom_dir:
        output_dir = Path(custom_dir)
    else:
        now = datetime.now()
        output_dir = Path("outputs") / now.strftime("%Y-%m-%d") / now.strftime("%H-%M-%S")

    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def setup_logging(output_dir: Path | None, verbose: bool = False, debug: bool = False) -> None:
    """Setup logging to the console and, when given an output directory, to a file."""
    log_level = logging.DEBUG if (verbose or debug) else logging.INFO
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if output_dir is not None:
        file_handler = logging.FileHandler(output_dir / "execution.log")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def build_inputs(args: argparse.Namespace) -> SongInputs:
    return SongInputs(
        artist_reference=args.artist,
        song_reference=args.song,
        topic=args.topic,
        mood=args.mood,
        genre=args.genre,
        vocals=args.vocals,
        instruments=args.instrument,
        structure=STRUCTURE_CHOICES[args.structure],
        custom_instructions=args.instructions,
        syllable_pattern=args.syllables,
        flags=FeatureFlags(
            advanced_lyric_logic=args.advanced,
            central_metaphor_logic=args.metaphor,
        ),
    )


def print_history(controller: SessionController) -> None:
    if not len(controller.store):
        print("No songs in history.")
        return
    for song in controller.store:
        summary = song.summary()
        marker = "*" if song.id == controller.store.current_id else " "
        score = summary["overall_score"]
        print(
            f"{marker} {summary['created_at'][:19]}  {song.id[:8]}  "
            f"{song.title}  (score: {score if score is not None else '-'})"
        )


async def main() -> None:
    args = parse_args()

    if args.list or args.clear:
        setup_logging(None, args.verbose, args.debug)
        controller = create_session(history_dir=args.history_dir, use_mock=args.mock)
        if args.clear:
            if not args.yes:
                print("Refusing to clear history without --yes", file=sys.stderr)
                sys.exit(1)
            controller.clear_history()
            print("History cleared.")
        else:
            print_history(controller)
        return

    output_dir = setup_output_dir(args.output_dir)
    setup_logging(output_dir, args.verbose, args.debug)

    start_time = time.time()
    start_datetime = datetime.now().isoformat()
    inputs = build_inputs(args)

    log.info("=" * 80)
    log.info("Starting song generation")
    log.info("Execution Parameters:")
    log.info(f"  - Timestamp: {start_datetime}")
    log.info(f"  - Topic: {inputs.topic or '<invent>'}")
    log.info(f"  - Genre: {inputs.genre or '<invent>'}")
    log.info(f"  - Structure: {inputs.structure.value}")
    log.info(f"  - Advanced lyric logic: {inputs.flags.advanced_lyric_logic}")
    log.info(f"  - Central metaphor: {inputs.flags.central_metaphor_logic}")
    log.info(f"  - Model: {args.model or f'default ({DEFAULT_MODEL_NAME})'}")
    log.info(f"  - Mock: {args.mock}")
    log.info(f"  - Output directory: {output_dir}")
    log.info("=" * 80)

    controller = create_session(
        history_dir=args.history_dir,
        use_mock=args.mock,
        auto_variations=args.variations,
        model_name=args.model,
        debug=args.debug,
    )

    try:
        song = await controller.submit(inputs)
    except CreationFailure as e:
        log.error("Error: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.render:
        if controller.request_render(song.id) is None:
            log.warning("Render not started (is SUNO_API_KEY set?)")

    await controller.wait_for_background()
    song = controller.store.get(song.id) or song

    elapsed_time = time.time() - start_time
    log.info("=" * 80)
    log.info(f"Execution completed successfully in {elapsed_time:.2f}s")
    log.info("=" * 80)

    output_file = output_dir / "result.json"
    output_file.write_text(song.model_dump_json(indent=2))
    log.info(f"Result saved to {output_file}")

    params_file = output_dir / "params.json"
    params = {
        "timestamp": start_datetime,
        "inputs": inputs.model_dump(mode="json"),
        "model": args.model or DEFAULT_MODEL_NAME,
        "mock": args.mock,
        "variations": args.variations,
        "render": args.render,
        "verbose": args.verbose,
        "debug": args.debug,
        "runtime_seconds": elapsed_time,
    }
    params_file.write_text(json.dumps(params, indent=2))
    log.info(f"Parameters saved to {params_file}")

    print(song.model_dump_json(indent=2))


if __name__ == "__main__":
    asyncio.run(main())
