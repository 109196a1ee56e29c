# -*- coding: utf-8 -*-
"""
Module: config.py
Package: bank_graph.utils
Purpose: Environment-driven settings for Neo4j access and batched imports

Values are read once at import time after load_dotenv(), so a local .env file
can hold credentials during development. Everything a caller may want to
override per call (batch size, retries) is also accepted as a function argument;
these constants are only the defaults.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Project Paths
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_PATH = PROJECT_ROOT / "data"
CHECKPOINT_PATH = PROJECT_ROOT / "checkpoints"

# ============================================================================
# NEO4J CONNECTION (from .env)
# ============================================================================

NEO4J_URI = os.getenv("NEO4J_URI")
NEO4J_USER = os.getenv("NEO4J_USER") or os.getenv("NEO4J_USERNAME")
NEO4J_PASSWORD = os.getenv("NEO4J_PASSWORD")
NEO4J_DATABASE = os.getenv("NEO4J_DATABASE", "neo4j")

DRIVER_CONFIG = {
    'max_connection_lifetime': 30 * 60,         # seconds
    'max_connection_pool_size': 50,
    'connection_acquisition_timeout': 60,       # seconds
    'max_transaction_retry_time': 30,           # seconds, driver-level retry
}


# ============================================================================
# BATCH IMPORT
# ============================================================================

IMPORT_CONFIG = {
    'batch_size': int(os.getenv("IMPORT_BATCH_SIZE", "200")),
    'max_retries': int(os.getenv("IMPORT_MAX_RETRIES", "3")),
    'retry_base_delay': 0.1,    # seconds; doubles on every retry
    'min_fk_confidence': 0.0,
    'use_merge': True,
}

# Debug
DEBUG_MODE = os.getenv("DEBUG_MODE", "false").lower() == "true"


def require_neo4j_settings(uri=None, user=None, password=None):
    """
    Resolve connection settings, falling back to the environment.

    Returns:
        Tuple of (uri, user, password)

    Raises:
        ValueError: If any of the three settings is missing
    """
    resolved = {
        'NEO4J_URI': uri or NEO4J_URI,
        'NEO4J_USER': user or NEO4J_USER,
        'NEO4J_PASSWORD': password or NEO4J_PASSWORD,
    }
    for name, value in resolved.items():
        if not value:
            raise ValueError(f"{name} environment variable is not set")
    return resolved['NEO4J_URI'], resolved['NEO4J_USER'], resolved['NEO4J_PASSWORD']
