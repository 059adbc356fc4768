"""
Main entry point for the prosbc_files package.

Allows running the client as: python -m prosbc_files
"""

from prosbc_files.cli import main

if __name__ == "__main__":
    main()
