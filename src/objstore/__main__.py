"""Allow running objstore as ``python -m objstore``."""

import sys

from objstore.cli import main

sys.exit(main())
