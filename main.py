"""VibeDB Schema Designer — Entry Point."""
import sys

from vibedb.cli import main


if __name__ == "__main__":
    sys.exit(main())
