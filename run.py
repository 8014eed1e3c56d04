"""
vibeseq - Main Entry Point
Run this script to use the command line sequencer without installing
"""

import sys
import os

# Add the project root to the path
project_root = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, project_root)

from vibeseq.cli import main

if __name__ == '__main__':
    sys.exit(main())
