"""
Logging setup for LoyalLink.

Configures the root logger once; modules log through
logging.getLogger(__name__).
"""
import logging
import os
import sys

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'

_configured = False


def setup_logging(level: str = None) -> None:
    """Configure root logging from LOG_LEVEL (default INFO). Safe to call twice."""
    global _configured
    if _configured:
        return

    level_name = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    root.addHandler(handler)

    # Outbound HTTP clients are chatty at INFO
    for noisy in ('urllib3', 'apscheduler', 'python_http_client'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    _configured = True
