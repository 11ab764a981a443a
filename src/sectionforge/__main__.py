"""
SectionForge package entry point.

Allows running sectionforge as a module:
    python -m sectionforge
"""

from sectionforge.cli import main

if __name__ == "__main__":
    main()
