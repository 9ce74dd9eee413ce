"""CLI module for lainclaw."""
