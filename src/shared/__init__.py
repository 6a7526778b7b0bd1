"""
Shared Kernel Module
====================

This module contains shared infrastructure used by the inbox bounded context
and the console HTTP surface.

Architecture Pattern: Modular Monolith
- The inbox module is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add inbox workflow rules to the shared kernel.
"""

__version__ = "1.0.0"
