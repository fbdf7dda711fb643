import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .config import create_backend, load_settings
from .controller import Controller
from .errors import ConfigError
from .log import configure_logging


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="tuigram", description="Photo sharing in the terminal.")
    parser.add_argument("--data-file", help="JSON file holding local data (default: ~/.tuigram_store.json)")
    parser.add_argument("--backend-url", help="use a hosted backend instead of local storage")
    parser.add_argument("--debug", action="store_true", default=None, help="write a debug log")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        settings = load_settings().with_overrides(
            data_file=Path(args.data_file).expanduser() if args.data_file else None,
            backend_url=args.backend_url,
            debug=args.debug,
        )
    except ConfigError as e:
        print(f"tuigram: {e.message}", file=sys.stderr)
        return 2

    logger = configure_logging(settings)
    logger.debug("starting with backend %s", settings.backend_url or settings.data_file)

    from .app import TuigramApp

    controller = Controller(create_backend(settings), settings=settings)
    try:
        TuigramApp(controller).run()
    except Exception:
        logging.getLogger("tuigram").exception("tuigram crashed")
        raise
    return 0


if __name__ == "__main__":
    sys.exit(main())
