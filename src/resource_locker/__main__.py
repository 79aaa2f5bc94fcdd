"""Allow ``python -m resource_locker``."""

import sys

from resource_locker.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
