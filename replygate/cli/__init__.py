"""CLI module for replygate."""
