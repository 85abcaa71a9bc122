"""
Allow the nftgate package to be executed as a module.

    python -m nftgate verify 0xWALLET
    python -m nftgate serve --port 8000
"""

import sys

from nftgate.main import main

if __name__ == "__main__":
    sys.exit(main())
