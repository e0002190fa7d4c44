"""
Common helpers shared by scrapers, services and the CLI.

Note: keep this package import side-effect free; import helpers from their
modules directly (Playwright is only needed by playwright_utils).
"""

__all__: list[str] = []
