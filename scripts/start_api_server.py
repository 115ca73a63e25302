"""Start the Flask API serving hierarchical cluster analyses."""
import argparse
import os
from pathlib import Path

from mvstats.config import DATA_DIR_ENV, MAX_CASES_ENV


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Start the multivariate analysis API server")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=5001, help="Port to bind to (default: 5001)")
    parser.add_argument("--data-dir", type=Path, default=None, help="Directory of CSV/parquet datasets to serve")
    parser.add_argument("--max-cases", type=int, default=None, help="Default ceiling on rows per analysis")
    parser.add_argument("--debug", action="store_true", help="Enable Flask debug mode")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    # Settings are read from the environment by create_app
    if args.data_dir is not None:
        os.environ[DATA_DIR_ENV] = str(args.data_dir)
    if args.max_cases is not None:
        os.environ[MAX_CASES_ENV] = str(args.max_cases)
    if not os.getenv("API_LOG_LEVEL"):
        os.environ["API_LOG_LEVEL"] = "DEBUG" if args.debug else "INFO"

    from mvstats.api.server import create_app

    app = create_app()
    store = app.config["DATASET_STORE"]
    print(f"Serving {len(store.names())} dataset(s) on http://{args.host}:{args.port}")
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
