"""Allow ``python -m fadertest``."""

import sys

from .cli import main

sys.exit(main())
