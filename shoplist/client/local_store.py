# shoplist/client/local_store.py
import json
from pathlib import Path
from typing import Iterable, List

from shoplist.domain.schemas import AppSettings, ShoppingItem
from shoplist.utils.settings import LOCAL_STORE_DIR
from shoplist.utils.logging import get_logger

logger = get_logger(__name__)

ITEMS_KEY = "shopping-list-items"
SETTINGS_KEY = "shopping-list-settings"


class LocalStore:
    """
    Key-value storage on the local disk for guests and free-plan users:
    one item list and one settings object, each a JSON file.
    """

    def __init__(self, directory: str | Path | None = None):
        self.directory = Path(directory or LOCAL_STORE_DIR)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def _write(self, key: str, data) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data), encoding="utf-8")
        tmp.replace(path)

    def _read(self, key: str):
        path = self._path(key)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def save_items(self, items: Iterable[ShoppingItem]) -> None:
        self._write(ITEMS_KEY, [i.model_dump(mode="json") for i in items])

    def load_items(self) -> List[ShoppingItem]:
        try:
            data = self._read(ITEMS_KEY)
            if not data:
                return []
            return [ShoppingItem.model_validate(i) for i in data]
        except (OSError, ValueError) as e:
            logger.error(f"Error loading items from local storage: {e}")
            return []

    def save_settings(self, settings: AppSettings) -> None:
        self._write(SETTINGS_KEY, settings.model_dump(mode="json"))

    def load_settings(self) -> AppSettings:
        try:
            data = self._read(SETTINGS_KEY)
            if not data:
                return AppSettings()
            return AppSettings.model_validate(data)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading settings from local storage: {e}")
            return AppSettings()
