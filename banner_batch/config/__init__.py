"""
Configuration Management
=======================

Environment-based configuration using Pydantic Settings.

Components:
- settings: Rendering, capture and batch settings
- logging: Structured logging configuration
"""
