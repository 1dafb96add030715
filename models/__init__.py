"""
models/ - Data Model
====================
Plain dataclasses describing statements, bound values and pool settings.
"""
