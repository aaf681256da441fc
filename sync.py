#!/usr/bin/env python3
"""
GitHub → Notion Sync CLI

Usage:
    python sync.py              # Run full sync
    python sync.py --dry-run    # Preview changes without writing to Notion
    python sync.py status       # Show what the Notion databases hold
"""

from issue_sync.cli import main

if __name__ == "__main__":
    main()
