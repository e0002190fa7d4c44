"""
School Data Pipeline - Hauptanwendung

Zentraler Einstiegspunkt für lokale Ausführung ohne Installation:

  python main.py scrape-details
  python main.py summary
"""

from school_pipeline.apps.cli import main

if __name__ == "__main__":
    main()
