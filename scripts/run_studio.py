#!/usr/bin/env python3
"""``PictoNet`` studio runner.

Usage:
    python scripts/run_studio.py --config scripts/user_config.py add "Quiero beber agua"
    python scripts/run_studio.py --config scripts/user_config.py run --all --concurrency 2
    python scripts/run_studio.py evaluate R_MANUAL_1700000000000_a1b2c3 --scores 5 4 5 4 4 5

The Gemini API key is read from GEMINI_API_KEY (environment or .env).
"""

import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root / "src"))

from pictonet.cli.run_studio import main


if __name__ == "__main__":
    sys.exit(main())
