"""
CLI runner module.

Provides commands:
- detect: Identify a statement's format
- preview: Parse, deduplicate and categorize without saving
- import: Run the full import and save the selected rows
- learn: Record a category correction
- merchants: List learned merchant mappings
- models: List on-device models
- init-config: Write a default configuration file
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
