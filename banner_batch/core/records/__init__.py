"""
Records Module
==============

Record file parsing and the manual edit overlay.

Components:
- loader: JSON/YAML record files validated with Cerberus
- overlay: per-record edits applied over loaded records
"""
