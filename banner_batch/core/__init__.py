"""
Core Business Logic
==================

Core modules for template binding and batch rendering.

Modules:
- template: template parsing, loading and field discovery
- binding: projection of record values onto a render target
- assets: asset bundles, archive reading and resource inlining
- records: record file loading and the manual edit overlay
- rendering: render targets and Playwright rasterization
- batch: batch orchestration and archive packaging
"""
