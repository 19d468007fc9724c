"""
Command-line interface for Vision Board.

Notes
-----
The CLI is intentionally thin. It parses arguments, opens the board store,
and delegates to engine modules. Every command that writes saves through the
same context path as the GUI.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from board_engine.board import BoardController
from board_engine.errors import StoreOpenError, VisionBoardError
from board_engine.init_board import board_paths_as_text, init_board
from board_engine.logging_setup import configure_logging
from board_engine.store.container import PersistentContainer, StoreOptions, open_board_container

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """
    Build and return the top-level argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Configured parser.
    """
    parser = argparse.ArgumentParser(
        prog="visionboard",
        description="Vision Board: goal cards stored locally and synced through a cloud folder",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    sub = parser.add_subparsers(dest="command", required=True)

    def _common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--board", default="default", help="Board name (default: default)")
        p.add_argument(
            "--data-root",
            default=None,
            help="Override the data root (primarily for testing). If omitted, defaults are used.",
        )

    init_p = sub.add_parser("init", help="Create a board's on-disk folder structure")
    _common(init_p)
    init_p.add_argument("--print-paths", action="store_true", help="Print resolved paths")

    list_p = sub.add_parser("list", help="List dreams sorted by title")
    _common(list_p)

    add_p = sub.add_parser("add", help="Add a dream")
    _common(add_p)
    add_p.add_argument("--title", required=True, help="Dream title")
    add_p.add_argument("--description", default="", help="Dream description")
    add_p.add_argument("--image", type=Path, default=None, help="Image file to attach")

    delete_p = sub.add_parser("delete", help="Delete a dream by id (cannot be undone)")
    _common(delete_p)
    delete_p.add_argument("--id", required=True, dest="dream_id", help="Dream id")

    sync_p = sub.add_parser("sync", help="Run one sync pass with a cloud folder")
    _common(sync_p)
    sync_p.add_argument("--cloud-root", required=True, type=Path, help="Cloud-synced folder")

    return parser


def _open(args: argparse.Namespace, *, cloud_root: Path | None = None) -> PersistentContainer:
    data_root = Path(args.data_root) if args.data_root else None
    return open_board_container(args.board, data_root, options=StoreOptions(cloud_root=cloud_root))


def _cmd_list(args: argparse.Namespace) -> int:
    with _open(args) as container:
        for dream in container.view_context.fetch_dreams():
            image = "image" if dream.image_data else "-"
            print(f"{dream.dream_id}  {dream.display_title}  [{image}]")
    return 0


def _cmd_add(args: argparse.Namespace) -> int:
    with _open(args) as container:
        controller = BoardController(container)
        try:
            session = controller.create_dream()
            session.title = args.title
            session.description = args.description
            if args.image is not None:
                session.load_image_file(args.image)
            if not session.save():
                print("ERROR: dream could not be saved (see log)")
                return 2
        finally:
            controller.close()
        print(session.dream.dream_id)
    return 0


def _cmd_delete(args: argparse.Namespace) -> int:
    with _open(args) as container:
        controller = BoardController(container)
        try:
            dream = container.view_context.dream(args.dream_id)
            if not controller.delete_dream(dream):
                print("ERROR: dream could not be deleted (see log)")
                return 2
        finally:
            controller.close()
    return 0


def _cmd_sync(args: argparse.Namespace) -> int:
    with _open(args, cloud_root=args.cloud_root) as container:
        report = container.sync_now()
    assert report is not None
    print(f"imported: {report.imported}")
    print(f"exported: {report.exported}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """
    CLI entry point.

    Parameters
    ----------
    argv:
        Optional argument vector. If None, argparse uses sys.argv.

    Returns
    -------
    int
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(None, verbose=args.verbose)

    if args.command == "init":
        data_root = Path(args.data_root) if args.data_root else None
        try:
            paths = init_board(board_name=args.board, data_root=data_root)
        except VisionBoardError as exc:
            print(f"ERROR: {exc}")
            return 2
        if args.print_paths:
            print(board_paths_as_text(paths))
        return 0

    handlers = {
        "list": _cmd_list,
        "add": _cmd_add,
        "delete": _cmd_delete,
        "sync": _cmd_sync,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 0

    try:
        return handler(args)
    except StoreOpenError as exc:
        logger.critical("Unresolved error loading persistent store: %s", exc)
        print(f"ERROR: {exc}")
        return 1
    except VisionBoardError as exc:
        print(f"ERROR: {exc}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
