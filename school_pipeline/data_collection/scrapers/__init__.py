"""
Data Collection Scrapers Package

Note: avoid importing scraper modules at package import time; the detail
scraper pulls in Playwright. Import concrete modules directly, e.g.:

    from school_pipeline.data_collection.scrapers.table_extractor import parse_table_html
"""

__all__ = []
