"""Flask application factory."""
from __future__ import annotations

import logging
import logging.handlers
import os
import time
from pathlib import Path
from typing import Optional

from flask import Flask
from flask_cors import CORS

from mvstats.api.hclus_routes import hclus_bp
from mvstats.api.routes.core import core_bp
from mvstats.api.routes.datasets import datasets_bp
from mvstats.api.services.result_cache import ResultCache
from mvstats.config import get_analysis_settings, get_data_dir, get_result_cache_settings
from mvstats.data.datasets import DatasetStore, build_store
from mvstats.logging_utils import quiet_noisy_loggers

logger = logging.getLogger(__name__)


def create_app(config_overrides: Optional[dict] = None, store: Optional[DatasetStore] = None) -> Flask:
    """Initialize and configure the Flask application."""
    app = Flask(__name__)
    CORS(app)  # Enable CORS for all routes by default

    # 1. Configuration
    app.config["STARTUP_TIME"] = time.time()
    analysis = get_analysis_settings()
    cache_settings = get_result_cache_settings()
    app.config["MAX_CASES"] = analysis.max_cases
    app.config["PLOT_DPI"] = analysis.plot_dpi
    if config_overrides:
        app.config.update(config_overrides)

    _configure_logging(Path(app.config.get("LOG_DIR", "logs")))

    # 2. Services
    if store is None:
        store = build_store(get_data_dir())
    app.config["DATASET_STORE"] = store
    app.config["RESULT_CACHE"] = ResultCache(
        max_entries=cache_settings.max_entries,
        ttl_seconds=cache_settings.ttl_seconds,
    )

    # 3. Register Blueprints
    app.register_blueprint(core_bp)
    app.register_blueprint(datasets_bp)
    app.register_blueprint(hclus_bp)

    logger.info("Multivariate API initialized with %d dataset(s)", len(store.names()))
    return app


def _configure_logging(log_dir: Path = Path("logs")) -> None:
    """Attach a rotating file handler for API diagnostics."""
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "api.log"

    log_level_name = os.getenv("API_LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_name, logging.INFO)

    root = logging.getLogger()
    quiet_noisy_loggers()

    # Avoid adding duplicate handlers if re-initializing
    already_configured = any(
        isinstance(h, logging.handlers.RotatingFileHandler)
        and getattr(h, "baseFilename", "") == str(log_path.resolve())
        for h in root.handlers
    )
    if already_configured:
        return

    root.setLevel(log_level)

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=5 * 1024 * 1024, backupCount=5
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
        )
    )
    root.addHandler(file_handler)


if __name__ == "__main__":
    # Dev server entry point
    app = create_app()
    port = int(os.getenv("PORT", 8000))
    app.run(host="0.0.0.0", port=port, debug=True)
