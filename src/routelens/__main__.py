"""
Main entry point for routelens when run as a module.

Allows execution via: python -m routelens

routelens/src/routelens/__main__.py
"""

from .cli import main

if __name__ == "__main__":
    main()
