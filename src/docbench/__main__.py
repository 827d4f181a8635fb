"""Allow ``python -m docbench``."""

import sys

from docbench.adapters.inbound.cli import main

sys.exit(main())
