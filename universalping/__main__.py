"""Allow running as ``python -m universalping``."""

from . import main

main()
