"""Version information for SectionForge."""

__version__ = "0.1.0"
