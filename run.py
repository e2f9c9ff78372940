#!/usr/bin/env python3
"""
Client Intake Service Entry Point

Starts the FastAPI server with the configured host and port.
"""

import sys

from client_intake.api import run_server
from client_intake.config import get_config
from client_intake.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(config.log_level, config.log_format)

    if not config.encryption_key:
        logger.warning("ENCRYPTION_KEY not configured, banking data cannot be encrypted or decrypted")

    logger.info(f"Starting Client Intake API on http://{config.api_host}:{config.api_port}")
    try:
        run_server(host=config.api_host, port=config.api_port)
    except KeyboardInterrupt:
        logger.info("Shutting down Client Intake API")
    except Exception as e:
        logger.error(f"Error starting server: {e}")
        sys.exit(1)
