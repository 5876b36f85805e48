"""Serve the procurement API: ``python -m procurement_api [--host H] [--port P]``."""

import argparse

import uvicorn

from procurement_api.app import create_app
from procurement_config.settings import load_settings


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Run the procurement service")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=4002)
    parser.add_argument("--config", default=None, help="YAML settings file")
    args = parser.parse_args(argv)

    settings = load_settings(args.config)
    uvicorn.run(create_app(settings), host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
