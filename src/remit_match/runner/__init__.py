"""
CLI runner module.

Provides commands:
- parse: Classify payment note lines
- company: Extract the payer name
- emails: Live mailbox evidence search with optional summary
- init-config: Write a default config file
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
