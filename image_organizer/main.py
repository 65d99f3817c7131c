import argparse
import logging
import sys
import threading
from pathlib import Path

from . import config
from .config import OrganizerSettings
from .core import ImageOrganizerApp
from .exceptions import ConfigurationError, DataUnavailable, WatchError


def setup_logging(dest_root: Path, verbose: bool):
    """Sets up logging to both console and a file in the destination."""
    log_level = logging.DEBUG if verbose else logging.INFO

    # Create dest root if it doesn't exist so we can log there
    dest_root.mkdir(parents=True, exist_ok=True)
    log_file = dest_root / config.LOG_FILENAME

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )

    # Silence chatty libraries
    logging.getLogger("exifread").setLevel(logging.ERROR)
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("watchdog").setLevel(logging.WARNING)


def install_exception_hooks():
    """Log anything that escapes a thread instead of dying silently."""
    def log_thread_exception(args):
        if issubclass(args.exc_type, SystemExit):
            return
        logging.error(
            f"Uncaught exception in thread {args.thread.name if args.thread else '?'}",
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
        )

    def log_exception(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        logging.error("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))

    threading.excepthook = log_thread_exception
    sys.excepthook = log_exception


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Image Organizer: sort pictures into YYYY/MM/DD[-City-CC] folders"
    )

    p.add_argument("-s", "--source-dir", type=Path, default=Path("./source"),
                   help="Source directory to scan (and watch)")
    p.add_argument("-d", "--dest-dir", type=Path, default=Path("./dest"),
                   help="Destination directory")
    p.add_argument("-p", "--processed-dir", type=Path, default=None,
                   help="Move originals here once placed")

    p.add_argument("-o", "--use-ollama", action="store_true",
                   help="Tag pictures with a vision model served by Ollama")
    p.add_argument("-u", "--ollama-url", default=config.DEFAULT_OLLAMA_URL, help="URL for Ollama service")
    p.add_argument("--model", default=config.DEFAULT_MODEL, help="Ollama model name")
    p.add_argument("--timeout", type=float, default=config.DEFAULT_ENRICH_TIMEOUT,
                   help="Per-request timeout for Ollama, in seconds")

    p.add_argument("-g", "--set-gps", default=None,
                   help="Force GPS coordinates: 'lat,lon' or a city name (e.g. 'Paris' or 'Paris-FR')")
    p.add_argument("-w", "--watch", action="store_true", help="Keep watching the source directory")
    p.add_argument("--workers", type=int, default=config.DEFAULT_WORKERS,
                   help="Worker threads in watch mode")
    p.add_argument("--cities", type=Path, default=config.DEFAULT_CITIES_PATH,
                   help="CSV of reference cities (city, iso2, lat, lng)")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return p.parse_args(argv)


def build_settings(args) -> OrganizerSettings:
    return OrganizerSettings(
        source_dir=args.source_dir.resolve(),
        dest_dir=args.dest_dir.resolve(),
        processed_dir=args.processed_dir.resolve() if args.processed_dir else None,
        use_ollama=args.use_ollama,
        ollama_url=args.ollama_url,
        model=args.model,
        timeout=args.timeout,
        set_gps=args.set_gps,
        watch=args.watch,
        cities_path=args.cities,
        workers=args.workers,
    )


def main(argv=None):
    args = parse_args(argv)
    settings = build_settings(args)

    setup_logging(settings.dest_dir, args.verbose)
    install_exception_hooks()

    logging.info("=== Image Organizer Started ===")
    logging.info(f"Source: {settings.source_dir}")
    logging.info(f"Dest:   {settings.dest_dir}")

    if not settings.source_dir.is_dir():
        logging.error(f"Source directory not found: {settings.source_dir}")
        sys.exit(1)

    try:
        app = ImageOrganizerApp(settings)
        app.run()
    except (DataUnavailable, ConfigurationError, WatchError) as e:
        logging.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        sys.exit(1)
    except Exception:
        logging.exception("Fatal error during organization.")
        sys.exit(1)


if __name__ == "__main__":
    main()
