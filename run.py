#!/usr/bin/env python3
"""
Run script for the Call Review worker
"""
import sys

from callreview.worker.runner import main

if __name__ == "__main__":
    sys.exit(main())
