"""
Test Suite
==========

Test suite mirroring the banner_batch package structure.

Test Categories:
- unit: Unit tests for individual components
- integration: End-to-end batch runs with a fake rasterizer
"""
