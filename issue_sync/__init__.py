"""
GitHub → Notion Sync Engine

Mirrors GitHub issues and pull requests into Notion databases,
converging on repeated runs without duplicating pages.
"""

__version__ = "1.0.0"
