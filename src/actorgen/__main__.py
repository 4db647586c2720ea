"""
Entry point for module execution (``python -m actorgen``).

This module delegates execution to the CLI handler in ``actorgen.cli.__main__``.
"""

import sys

from actorgen.cli.__main__ import main

if __name__ == "__main__":
  sys.exit(main())
