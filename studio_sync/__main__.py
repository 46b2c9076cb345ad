"""
Entry point for ``python -m studio_sync``.
"""

from studio_sync.cli import main


if __name__ == "__main__":
    main()
