"""Allow `python -m bridgeflow`."""

import sys

from bridgeflow.cli import main

sys.exit(main())
