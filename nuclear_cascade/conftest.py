# conftest.py: package root
#
# Ensures that the repository root (the directory containing the
# nuclear_cascade package and runner.py) is on sys.path when pytest is
# invoked without a package install.
#
# Usage:
#   pytest nuclear_cascade/tests/ -v
#   pytest nuclear_cascade/tests/test_cascade.py -v

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))
