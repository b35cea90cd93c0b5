"""
Banner Batch
============

Bind an annotated HTML banner template to a batch of data records and render
one PNG per record, packaged into a single zip archive.

This package provides:
- Field discovery over template markup
- Record binding with composite price fields and repeated image groups
- Inlining of images and fonts referenced by markup, stylesheets and records
- Sequential batch rendering with Playwright and zip packaging
"""

__version__ = "1.0.0"
__author__ = "Banner Batch Team"
