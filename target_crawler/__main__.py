"""
Main entry point for the target_crawler package.

Allows running the crawler as: python -m target_crawler
"""

from target_crawler.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
