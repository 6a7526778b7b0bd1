"""
Infrastructure Layer
=====================

Low-level technical concerns:
- Logging setup
- Async coordination (debouncing, request fencing)
"""
