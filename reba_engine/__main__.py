# Development server: python -m reba_engine --port 8000
import argparse

import uvicorn

from .api import create_app
from .config import configure_logging, load_settings


def build_parser():
    parser = argparse.ArgumentParser(description="Run the REBA scoring API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--config", default=None, help="YAML service settings (defaults to $REBA_CONFIG)")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    settings = load_settings(args.config)
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=args.host, port=args.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
