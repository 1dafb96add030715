"""
repositories/ - Data Access Layer
==================================
Caller-facing CRUD operations. Repositories turn table names and
column -> value mappings into statements and return rows as dicts.
"""
