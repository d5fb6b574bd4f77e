"""
Standalone supervisor process (no API server).

Loads settings, builds the sinks, and runs the supervisor until SIGINT/SIGTERM
or until the restart cap is reached.

Usage: python -m mempool_sentinel.agent_worker.runtime
"""

from __future__ import annotations

import sys

from mempool_sentinel.agent_worker.supervisor import Supervisor
from mempool_sentinel.config import get_settings
from mempool_sentinel.config.env import mask_url
from mempool_sentinel.core.exceptions import ConfigError
from mempool_sentinel.database import configure_database
from mempool_sentinel.sentinel_logging import get_logger
from mempool_sentinel.sinks import build_sink_adapter

logger = get_logger(__name__)


def main() -> int:
    """Returns the process exit code: 0 on clean shutdown, 1 on config error or exhausted restarts."""
    try:
        settings = get_settings()
    except ConfigError as e:
        logger.error("runtime_config_error", error=str(e))
        return 1

    configure_database(settings.database_url)
    sinks = build_sink_adapter(settings)
    logger.info(
        "runtime_starting",
        endpoint=mask_url(settings.stream_endpoint),
        sinks=sinks.names,
    )
    supervisor = Supervisor(settings, sinks)
    try:
        supervisor.start()
    finally:
        sinks.close()
    if supervisor.state.exhausted:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
