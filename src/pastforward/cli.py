"""Past Forward batch CLI.

Runs one full photo cycle without the web server: upload, generate every
decade, write the per-decade images and, when every decade succeeded, the
album.

Usage
-----
::

    pastforward-batch portrait.jpg --out outputs --backend dryrun
    pastforward-batch portrait.jpg --caption 1970s="Groovy Me"

Exit status is ``0`` when the album was written and ``1`` otherwise.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import mimetypes
from collections.abc import Sequence
from pathlib import Path

from .core.config import PastForwardConfig, config
from .core.errors import PastForwardError
from .core.exports import album_filename
from .core.generator_client import GeneratorClient, build_generator_client
from .core.images import to_data_url
from .core.result_store import Status, StoreEvent
from .core.session import PastForwardSession

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _caption_arg(value: str) -> tuple[str, str]:
    decade, sep, text = value.partition("=")
    if not sep or not decade.strip():
        raise argparse.ArgumentTypeError(f"expected DECADE=TEXT, got {value!r}")
    return decade.strip(), text


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pastforward-batch",
        description="Generate a photo through the decades and compose the album",
    )
    parser.add_argument("photo", type=Path, help="Path to the source photo")
    parser.add_argument("--out", type=Path, help="Output directory (default: PASTFORWARD_OUTPUTS_DIR)")
    parser.add_argument("--backend", choices=["gemini", "dryrun"], help="Generator backend")
    parser.add_argument("--workers", type=int, help="Number of concurrent workers")
    parser.add_argument(
        "--caption",
        action="append",
        default=[],
        type=_caption_arg,
        metavar="DECADE=TEXT",
        help="Album caption override (repeatable)",
    )
    return parser


def _read_photo(path: Path) -> str:
    mime_type = mimetypes.guess_type(path.name)[0] or "image/jpeg"
    return to_data_url(path.read_bytes(), mime_type)


def _log_transition(event: StoreEvent) -> None:
    if event.kind != "transition" or event.entry is None:
        return
    if event.entry.error:
        logger.info("%s -> %s (%s)", event.decade, event.entry.status.value, event.entry.error)
    else:
        logger.info("%s -> %s", event.decade, event.entry.status.value)


def _settings(args: argparse.Namespace) -> PastForwardConfig:
    overrides: dict[str, object] = {}
    if args.backend:
        overrides["generator_backend"] = args.backend
    if args.workers is not None:
        overrides["worker_count"] = args.workers
    if args.out is not None:
        overrides["outputs_dir"] = args.out
    return PastForwardConfig.model_validate({**config.model_dump(), **overrides})


async def _run_cycle(session: PastForwardSession, out_dir: Path) -> bool:
    await session.generate_all()

    for decade in session.catalog.ids:
        entry = session.entry(decade)
        if entry is None or entry.status is not Status.DONE:
            print(f"{decade}: failed ({entry.error if entry else 'not generated'})")
            continue
        filename, image = session.decade_download(decade)
        (out_dir / filename).write_bytes(image.data)
        print(f"{decade}: {out_dir / filename}")

    if not session.album_ready():
        print("Album skipped: not every decade finished.")
        return False
    album_path = out_dir / album_filename()
    album_path.write_bytes(await session.build_album())
    print(f"Album: {album_path}")
    return True


def run(argv: Sequence[str] | None = None, client: GeneratorClient | None = None) -> int:
    """Run the batch CLI and return its exit status."""
    args = _build_parser().parse_args(argv)

    try:
        settings = _settings(args)
        photo = _read_photo(args.photo)
        session = PastForwardSession(settings, client or build_generator_client(settings))
        session.upload_photo(photo)
        for decade, caption in args.caption:
            session.set_caption(decade, caption)
    except (OSError, ValueError, PastForwardError) as exc:
        print(f"Error: {exc}")
        return 1

    session.store.subscribe(_log_transition)
    out_dir = settings.outputs_dir
    out_dir.mkdir(parents=True, exist_ok=True)

    try:
        album_written = asyncio.run(_run_cycle(session, out_dir))
    except PastForwardError as exc:
        print(f"Error: {exc}")
        return 1
    return 0 if album_written else 1


def main(argv: Sequence[str] | None = None) -> None:
    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)
    raise SystemExit(run(argv))


if __name__ == "__main__":
    main()
