"""
Zentrale Konfiguration für die School Data Pipeline
Basiert auf Pydantic Settings mit Environment Variable Support
"""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application Settings mit Environment Variable Support"""

    # Database
    database_url: str = "sqlite:///./data/schools.db"
    database_pool_size: int = 5
    database_echo: bool = False

    # Source pages
    school_list_url: str = "https://www.bildung.berlin.de/Schulverzeichnis/SchulListe.aspx"
    school_list_link_selector: str = "#DataListSchulen tr a[href]"
    statistics_url: str = "https://www.bildungsstatistik.berlin.de/statistik/ListGen/SVZ_Fakt5.aspx"
    statistics_deadline_seconds: float = 300.0

    # Content cache
    cache_dir: str = "./cache/school-details"
    cache_enabled: bool = True

    # Scraping
    scraping_pacing_seconds: float = 2.0
    scraping_page_timeout_seconds: float = 120.0
    scraping_call_timeout_seconds: float = 15.0
    scraping_settle_seconds: float = 1.0
    scraping_stats_settle_seconds: float = 2.0
    scraping_tab_settle_seconds: float = 1.0
    scraping_run_deadline_hours: float = 4.0
    scraping_headless: bool = True
    scraping_user_agent: Optional[str] = None
    scraping_locale: str = "de-DE"

    # Listing fetch (plain HTTP)
    http_timeout_seconds: float = 30.0
    http_retries: int = 3
    http_backoff: float = 1.5

    # Monitoring
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def run_deadline_seconds(self) -> float:
        return self.scraping_run_deadline_hours * 3600.0


# Global Settings Instance
settings = Settings()
