"""Sub-command handlers."""
