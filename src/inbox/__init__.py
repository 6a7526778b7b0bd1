"""
Inbox Module
============

Bounded Context for curating machine-suggested question/answer pairs.

Responsibilities:
- Validate citations attached as evidence
- Enforce the inbox item lifecycle and ownership rules
- Run workflow actions against the Admin API and classify their outcomes
- Keep the console's list of active items consistent under partial failure
"""

__version__ = "1.0.0"
