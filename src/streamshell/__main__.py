"""Entry point for running streamshell as a module.

Usage:
    python -m streamshell [--http URL] [--transcript FILE]
"""

from streamshell.cli import main

if __name__ == "__main__":
    main()
