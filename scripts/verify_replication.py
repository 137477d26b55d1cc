#!/usr/bin/env python3
"""
Replication verification for Scylla clusters.

Usage:
    ./scripts/verify_replication.py --starttime=1265875194289 --endtime=1265878794289 5 users
    ./scripts/verify_replication.py --families=cf1,cf2 --versions=1 5 users
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.verification.cli import main


if __name__ == "__main__":
    sys.exit(main())
