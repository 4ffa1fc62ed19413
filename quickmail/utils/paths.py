"""Centralized path definitions for the quickmail application.

This module provides a single source of truth for all application paths,
preventing duplication and making path configuration easier to maintain.
Set QUICKMAIL_HOME to relocate everything (tests and deployments do).
"""

import os
from pathlib import Path

# Base application directory
QUICKMAIL_DIR = Path(os.getenv("QUICKMAIL_HOME", str(Path.home() / ".quickmail")))

# Subdirectories
DATA_DIR = QUICKMAIL_DIR / "data"
LOGS_DIR = QUICKMAIL_DIR / "logs"
FILES_DIR = QUICKMAIL_DIR / "files"
TEMP_DIR = QUICKMAIL_DIR / "temp"

# Specific files
DATABASE_PATH = DATA_DIR / "quickmail.db"
CONFIG_PATH = QUICKMAIL_DIR / "config.json"
