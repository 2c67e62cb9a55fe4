import signal
import threading
from typing import Optional

from utils.logger_utils import get_logger

logger = get_logger("Signal Utils")


def configure_signals(stop_event: Optional[threading.Event] = None) -> threading.Event:
    """
    Configures signal handlers for graceful shutdown.
    SIGINT and SIGTERM set the returned event; long-running jobs poll it between
    contracts, stop processing and flush their results before the process exits.
    """
    if stop_event is None:
        stop_event = threading.Event()

    def shutdown_handler(signo, _stack_frame):
        if stop_event.is_set():
            logger.warning(f"Received {signal.Signals(signo).name} again. Shutdown already in progress.")
            return
        logger.info(f"Received {signal.Signals(signo).name}. Stopping after the current contract...")
        stop_event.set()

    signal.signal(signal.SIGINT, shutdown_handler)
    signal.signal(signal.SIGTERM, shutdown_handler)
    return stop_event
