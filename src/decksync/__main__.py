"""
Entry point for the decksync alignment service.
"""

import logging
import os

import uvicorn
from uvicorn.config import LOGGING_CONFIG

logger = logging.getLogger(__name__)


def main():
    """
    Start the alignment service using uvicorn.
    """
    host = os.getenv("DECKSYNC_HOST", "0.0.0.0")
    port = int(os.getenv("DECKSYNC_PORT", "5200"))

    LOGGING_CONFIG["formatters"]["default"][
        "fmt"
    ] = "%(asctime)s %(levelname)s --- [%(name)s] : %(message)s"
    LOGGING_CONFIG["formatters"]["access"][
        "fmt"
    ] = "%(asctime)s %(levelname)s --- [%(name)s] : %(message)s"
    logger.info("Starting decksync alignment service on %s:%d", host, port)

    uvicorn.run("decksync.alignment.app:app", host=host, port=port)


if __name__ == "__main__":
    main()
