"""CLI package: click commands and rich rendering helpers."""
