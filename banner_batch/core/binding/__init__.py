"""
Binding Module
==============

Writing record values into a live render target.

Components:
- binder: bind a whole record or a single field
- composite_price: integer/decimal price slots
- image_groups: repeated image groups driven by source and quantity fields
"""
