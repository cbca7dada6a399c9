#!/usr/bin/env python3
# Entry point for the client host: python3 -m lsp check file.arc

import sys

from arcane import main

if __name__ == "__main__":
    sys.exit(main())
