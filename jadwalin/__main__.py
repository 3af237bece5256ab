"""
Package entry point.

Allows running the application via:

    python -m jadwalin

This simply forwards execution to jadwalin.cli.main().
"""

from jadwalin.cli import main

if __name__ == "__main__":
    main()
