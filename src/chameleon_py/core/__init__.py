"""Cross-cutting infrastructure for chameleon-py: logging and error handling."""
