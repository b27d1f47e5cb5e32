"""
Package entry point.

Allows running the application via:

    python -m taxischedule

This simply forwards execution to taxischedule.cli.main().
"""

from taxischedule.cli import main

if __name__ == "__main__":
    main()
