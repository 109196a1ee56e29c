# -*- coding: utf-8 -*-
"""
Processing package for schema analysis of tabular banking data.

Contains fk_detector (header-based foreign key detection with confidence
scoring) and relationship_inference (domain rule table turning foreign keys
into typed, directed relationships).
"""
