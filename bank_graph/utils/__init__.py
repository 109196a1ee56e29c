# -*- coding: utf-8 -*-
"""
Utilities package for common functionality across the import pipeline.

Contains logging setup, environment-driven configuration, shared dataclasses and
enums, and the error hierarchy used throughout the codebase.
"""
