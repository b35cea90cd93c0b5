"""
Batch Module
============

Sequential render pipeline and output packaging.

Components:
- orchestrator: bind, settle, capture and collect each record in order
- naming: run timestamp and output names
- packager: zip archive of every produced raster
"""
