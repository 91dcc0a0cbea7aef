import json
import logging
from pathlib import Path

import embedded_cassandra.settings as default_settings

log = logging.getLogger(__name__)


class MergedSettings:
    """
    A singleton class that merges default settings with JSON/env overrides.

    It follows a clear precedence:
    1. Base values from `settings.py`.
    2. Overrides from the environment or a `.env` file (applied in settings.py).
    3. Overrides from `overrides.json` for settings in `MODIFIABLE_SETTINGS`.
    """

    def __init__(self, overrides_path: Path = None) -> None:
        """Initializes the settings object by loading defaults and overrides."""
        self.OVERRIDES_JSON_PATH: Path = overrides_path or default_settings.OVERRIDES_JSON_PATH

        self._load_defaults()
        self._load_overrides()

    def _load_defaults(self) -> None:
        """Loads all uppercase attributes from the settings.py module as defaults."""
        for key in dir(default_settings):
            if key.isupper():
                setattr(self, key, getattr(default_settings, key))

    def _load_overrides(self) -> None:
        """
        Loads and applies settings from the `overrides.json` file.

        Only keys listed in `MODIFIABLE_SETTINGS` are applied.
        """
        if not self.OVERRIDES_JSON_PATH.exists():
            return

        try:
            with self.OVERRIDES_JSON_PATH.open('r') as f:
                overrides = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            log.error(f"Failed to load or parse overrides file '{self.OVERRIDES_JSON_PATH}': {e}")
            return

        log.info(f"Loading configuration overrides from {self.OVERRIDES_JSON_PATH}")
        for key, value in overrides.items():
            if not hasattr(self, key):
                log.warning(f"Override setting '{key}' not found in default settings. Ignoring.")
                continue
            if key not in self.MODIFIABLE_SETTINGS:
                log.warning(f"Attempted to override non-modifiable setting '{key}'. Ignoring.")
                continue

            # Coerce path strings back to Path objects if necessary
            if isinstance(getattr(self, key), Path):
                value = Path(value)
            setattr(self, key, value)
            log.debug(f"Overridden setting: {key} = {value}")

    def artifact_urls(self, version) -> list:
        """Renders the candidate download URLs for a version, in mirror order."""
        archive = self.ARCHIVE_NAME_TEMPLATE.format(version=version)
        return [t.format(version=version, archive=archive) for t in self.ARTIFACT_URL_TEMPLATES]


# Create a singleton instance to be imported by other modules
app_settings = MergedSettings()
