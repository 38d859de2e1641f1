import asyncio
import os
import signal
import logging
import sys

from config import CONFIG_PATH, load_config
from errors import ConfigLoadError, ConfigParseError
from monitor_manager import MonitorManager
from storage import create_sink

# Setup Logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("NetProbe")


async def run(config_path: str = CONFIG_PATH):
    config = load_config(config_path)
    logger.info(f"Using {config.local.source_name} as source name")

    manager = MonitorManager(config, create_sink(config.backend))

    # Graceful shutdown on SIGINT/SIGTERM: stop ticking, finish in-flight probes, flush
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, manager.stop)
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl+C still interrupts
            logger.debug(f"Signal handler for {sig.name} not supported on this platform")

    await manager.run_loop()


def main():
    logger.info("NetProbe Starting...")
    # Optional positional argument overrides MONITORING_CONFIG
    config_path = sys.argv[1] if len(sys.argv) > 1 else CONFIG_PATH
    try:
        asyncio.run(run(config_path))
    except (ConfigLoadError, ConfigParseError) as e:
        logger.critical(f"Cannot start: {e}")
        sys.exit(1)
    logger.info("NetProbe Stopped")


if __name__ == "__main__":
    main()
