import logging
import time

logger = logging.getLogger(__name__)


class HealthReporter:
    def __init__(self, store):
        self.store = store

    def snapshot(self) -> dict:
        try:
            connected = self.store.ping()
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            connected = False
        return {
            "status": "UP" if connected else "DOWN",
            "database": "Connected" if connected else "Disconnected",
            "timestamp": int(time.time() * 1000),
        }
