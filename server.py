#!/usr/bin/env python3
"""
FastMCP Server for the SmartStock Ledger

Run this script to start the MCP server that provides the ledger tools.
"""

import logging
import sys
import os

# Add the smartstock package to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from smartstock import config
from smartstock.main import mcp

if __name__ == "__main__":
    try:
        cfg = config.load_config()
        logging.basicConfig(level=config.get_log_level(), format=cfg.logging.format, force=True)
        mcp.run()
    except KeyboardInterrupt:
        print("\n👋 SmartStock Ledger shutting down...")
        sys.exit(0)
    except Exception as e:
        print(f"❌ Failed to start MCP server: {e}")
        sys.exit(1)
