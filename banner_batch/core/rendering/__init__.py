"""
Rendering Module
================

Live render targets and PNG creation with browser automation.

Components:
- render_target: mutable template tree records are bound into
- document_builder: Jinja2 document shell around a bound tree
- png_generator: Playwright rasterizer capturing the export root
- templates: document shell templates
"""
