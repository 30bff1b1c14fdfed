#!/usr/bin/env python3
"""
Run cross-validated model selection for every enabled model in a YAML config.

Usage:
    python scripts/run_selection.py configs/example.yaml [--debug]
"""
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent))

from cvselect.runner import main

if __name__ == "__main__":
    sys.exit(main())
