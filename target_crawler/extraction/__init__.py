"""Link extraction from fetched pages."""

from target_crawler.extraction.links import extract_links

__all__ = ["extract_links"]
