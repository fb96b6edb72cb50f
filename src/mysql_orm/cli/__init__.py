"""
MySQL ORM Command Line Interface.

Provides migration and scaffolding commands:
- up / init / exec / rollback / reset / status: Manage schema migrations
- new-migration: Create empty up/down SQL files
- gen: Print model, schema and test scaffolding
"""

from .commands import cli, main

__all__ = ["cli", "main"]
