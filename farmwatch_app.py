"""WSGI entry point for the FarmWatch anomaly backend.

``gunicorn farmwatch_app:app`` serves the module-level ``app``; the
``farmwatch-backend`` console script runs Flask's development server.
"""
from __future__ import annotations

import logging

from app import create_app
from app.config import load_config

app = create_app()


def main() -> int:
    config = load_config()

    logging.info("Starting server on %s:%s", config.host, config.port)
    try:
        app.run(host=config.host, port=config.port, debug=config.DEBUG, use_reloader=False)
        logging.info("Server stopped.")
        return 0
    except KeyboardInterrupt:
        logging.info("Server stopped by user.")
        return 0
    except OSError as exc:
        logging.exception("Failed to start server: %s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
