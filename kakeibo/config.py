"""YAML configuration loader for kakeibo.

Loads the config files from the config/ directory:
  categories.yaml  default categories seeded into a new database
  settings.yaml    import defaults, export directory, reminder defaults
"""

from pathlib import Path

import yaml

from kakeibo.database.models import DEFAULT_COLOR, DEFAULT_ICON, DEFAULT_USER_ID


class Config:
    """Loads and provides access to all YAML configuration files."""

    def __init__(self, config_dir: Path | str = "config"):
        self.config_dir = Path(config_dir)
        if not self.config_dir.is_dir():
            raise FileNotFoundError(f"Config directory not found: {self.config_dir}")

        self._categories: list[dict] | None = None
        self._settings: dict | None = None

    def _load(self, filename: str) -> dict | list:
        path = self.config_dir / filename
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
        if data is None:
            raise ValueError(f"Empty config file: {path}")
        return data

    @property
    def categories(self) -> list[dict]:
        if self._categories is None:
            data = self._load("categories.yaml")
            self._categories = data.get("categories", []) if isinstance(data, dict) else data
        return self._categories

    @property
    def settings(self) -> dict:
        if self._settings is None:
            self._settings = self._load("settings.yaml")
        return self._settings

    def default_categories(self) -> list[tuple[str, str, str, int]]:
        """Default categories as (name, icon, color, sort_order) tuples.

        Entries without a name are skipped. sort_order falls back to the
        entry's 1-based position in the file.
        """
        result = []
        for position, entry in enumerate(self.categories, start=1):
            name = str(entry.get("name", "")).strip()
            if not name:
                continue
            result.append((
                name,
                entry.get("icon", DEFAULT_ICON),
                entry.get("color", DEFAULT_COLOR),
                int(entry.get("sort_order", position)),
            ))
        return result

    @property
    def import_settings(self) -> dict:
        return self.settings.get("import", {}) or {}

    @property
    def import_default_icon(self) -> str:
        """Icon for categories created during a CSV import. Default: 'tag.fill'."""
        return self.import_settings.get("default_icon", DEFAULT_ICON)

    @property
    def import_default_color(self) -> str:
        return self.import_settings.get("default_color", DEFAULT_COLOR)

    @property
    def import_user_id(self) -> int:
        return int(self.import_settings.get("user_id", DEFAULT_USER_ID))

    @property
    def export_directory(self) -> Path:
        export = self.settings.get("export", {}) or {}
        return Path(export.get("directory", "exports"))

    @property
    def reminder_default_times(self) -> list[str]:
        reminders = self.settings.get("reminders", {}) or {}
        return [str(t) for t in reminders.get("default_times", ["20:00"])]
