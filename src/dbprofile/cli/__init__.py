"""CLI for dbprofile."""
