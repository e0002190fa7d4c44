"""
Content Cache
Dateibasierter Cache für bereits gescrapte Schulportraits, adressiert über die URL.
"""

from __future__ import annotations

import hashlib
import logging
import shutil
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..domain.models import SchoolDetailRecord


class ContentCache:
    """Speichert ``SchoolDetailRecord`` als JSON unter ``<root>/<key[:2]>/<key>.json``.

    Der Schlüssel ist der SHA-256 Hex-Digest der URL. Lesefehler werden wie ein
    Cache-Miss behandelt, damit die Seite einfach neu gescrapt wird.
    """

    def __init__(self, cache_dir: str | Path):
        self.root = Path(cache_dir)
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def key_for(url: str) -> str:
        return hashlib.sha256(url.encode("utf-8")).hexdigest()

    def path_for(self, url: str) -> Path:
        key = self.key_for(url)
        return self.root / key[:2] / f"{key}.json"

    def get(self, url: str) -> Optional[SchoolDetailRecord]:
        """Gibt den gecachten Record zurück oder None (Miss oder unlesbarer Eintrag)"""
        path = self.path_for(url)
        if not path.is_file():
            return None
        try:
            return SchoolDetailRecord.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as e:
            self.logger.warning(f"Ignoring unreadable cache entry for {url} ({path}): {e}")
            return None

    def put(self, url: str, record: SchoolDetailRecord) -> bool:
        path = self.path_for(url)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
            return True
        except OSError as e:
            self.logger.warning(f"Failed to write cache entry for {url}: {e}")
            return False

    def clear(self) -> bool:
        """Löscht den kompletten Cache-Ordner"""
        if not self.root.exists():
            self.logger.info(f"Cache directory {self.root} does not exist, nothing to clear")
            return True
        try:
            shutil.rmtree(self.root)
            self.logger.info(f"Cache cleared: {self.root}")
            return True
        except OSError as e:
            self.logger.error(f"Failed to clear cache {self.root}: {e}")
            return False

    def __contains__(self, url: str) -> bool:
        return self.path_for(url).is_file()
