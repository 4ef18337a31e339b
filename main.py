"""hookcast - CLI entry point for running from a checkout."""
import sys
from pathlib import Path

ROOT = Path(__file__).parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from hookcast.cli import main

if __name__ == "__main__":
    sys.exit(main())
