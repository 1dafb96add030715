"""
db/ - Database Layer
====================
Connection pooling, statement building and execution on DB-API drivers.
This layer depends only on models/ and utils/.
"""
