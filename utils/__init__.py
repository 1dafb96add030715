"""
utils/ - Shared Helpers
=======================
Cross-cutting helpers (logging).
"""
