"""
Main entrypoint: mempool supervisor (24/7) in background thread + FastAPI server in main thread.

The supervisor runs in a daemon thread so the process stays alive for the API; the API
runs in the main thread and remains responsive. On SIGINT/SIGTERM the server
shuts down and the process exits (daemon thread is stopped by the runtime).

Env: STREAM_ENDPOINT (or WEB_SOCKET_URL), POLL_INTERVAL_SEC, SENTINEL_DB_URL / DB_PATH, API_HOST, API_PORT, etc.

API-only (no supervisor): uvicorn mempool_sentinel.api_server.app:app --host 0.0.0.0 --port 8000
Supervisor-only: python -m mempool_sentinel.agent_worker.runtime
"""

import os
import sys
import threading

# Configure structured JSON logging before other imports that may log
from mempool_sentinel.sentinel_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Start the supervisor in a background thread, then run FastAPI server in main thread."""
    from mempool_sentinel.config import get_settings
    from mempool_sentinel.config.env import mask_url
    from mempool_sentinel.core.exceptions import ConfigError

    try:
        settings = get_settings()
    except ConfigError as e:
        logger.error("main_config_error", error=str(e))
        sys.exit(1)

    from mempool_sentinel.agent_worker.supervisor import Supervisor
    from mempool_sentinel.database import configure_database
    from mempool_sentinel.sinks import build_sink_adapter

    configure_database(settings.database_url)
    sinks = build_sink_adapter(settings)
    supervisor = Supervisor(settings, sinks)

    worker_thread = threading.Thread(target=supervisor.start, name="mempool-supervisor", daemon=True)
    worker_thread.start()
    logger.info(
        "main_supervisor_started",
        thread="daemon",
        endpoint=mask_url(settings.stream_endpoint),
        sinks=sinks.names,
    )

    from mempool_sentinel.api_server.app import app
    import uvicorn

    logger.info("main_server_starting", host=settings.api_host, port=settings.api_port)
    try:
        uvicorn.run(
            app,
            host=settings.api_host,
            port=settings.api_port,
            log_level=os.getenv("LOG_LEVEL", "info").lower(),
        )
    finally:
        supervisor.stop()
        worker_thread.join(timeout=settings.call_timeout_sec)
        sinks.close()


if __name__ == "__main__":
    main()
