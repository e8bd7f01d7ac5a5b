"""Allow ``python -m legacymigrate``."""

import sys

from legacymigrate.cli import main

if __name__ == "__main__":
    sys.exit(main())
