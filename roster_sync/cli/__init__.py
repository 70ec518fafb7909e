"""Command line interface (``roster-sync``); entry point ``roster_sync.cli.__main__:main``."""
