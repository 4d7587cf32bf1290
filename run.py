#!/usr/bin/env python3
"""
Investment Platform Entry Point

Starts the FastAPI server on the configured host and port.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from investment_platform.api import run_server
from investment_platform.config import get_config
from investment_platform.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    setup_logging(config.log_level, config.log_format)

    print("Starting Investment Platform...")
    print(f"Storage backend: {config.storage_backend}")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(host=config.api_host, port=config.api_port)
    except KeyboardInterrupt:
        print("\nShutting down Investment Platform...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
