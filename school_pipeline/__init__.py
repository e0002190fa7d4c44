"""
School Data Pipeline
Harvesting, Normalisierung und Persistenz des Berliner Schulverzeichnisses
"""

__version__ = "1.0.0"
__author__ = "School Data Team"

# NOTE:
# Avoid importing heavy modules (like configuration or Playwright) at package
# import time to keep "import school_pipeline" lightweight and side-effect free,
# particularly for unit tests that only need the parsing helpers.

__all__ = []
