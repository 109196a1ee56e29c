# -*- coding: utf-8 -*-
"""
Graph writing package for Neo4j.

Contains neo4j_client (async driver wrapper exposing the transactional write
executor), batch_manager (chunked, retrying transactional execution), and
neo4j_import_processor (orchestrator and CLI for table imports).
"""
