"""
Template Module
===============

Template parsing, loading and field discovery.

Components:
- dom: BeautifulSoup helpers shared across the engine
- discovery: slot marker scan producing the TemplateDescriptor
- loader: markup/stylesheet/archive loading into a BannerTemplate
"""
