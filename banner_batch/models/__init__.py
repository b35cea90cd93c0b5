"""
Data Models
===========

Pydantic data models for templates, records, resources and batch runs.
"""
