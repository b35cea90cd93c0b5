"""
Assets Module
=============

Asset bundles, template archive reading and resource inlining.

Components:
- archive: read a zip container and partition its entries by role
- bundle: normalized resource key -> inline payload lookup
- resolver: rewrite path references in markup, stylesheets and records
"""
