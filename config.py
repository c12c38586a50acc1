import os
import yaml
import keyring

from settings_schema import SettingsSchema, validate_settings

APP_VERSION = "1.0.0"

PLACEHOLDER_URL = "https://placeholder.supabase.co"
PLACEHOLDER_KEY = "placeholder-key"


class YamlConfig:
    """Settings file in YAML with backend secrets optionally kept in the OS keyring.

    With ``ENCRYPT_SETTINGS=1`` the values of ``SENSITIVE_KEYS`` are written to
    the keyring and the YAML file only records that a secret exists.
    """

    SENSITIVE_KEYS = {"backend_key"}

    ENV_OVERRIDES = {
        "BACKEND_URL": "backend_url",
        "BACKEND_KEY": "backend_key",
        "DB_PATH": "db_path",
    }

    def __init__(self, path: str = "settings.yaml", service: str = "lockedin") -> None:
        self.path = path
        self.service = service
        self.encrypt = os.environ.get("ENCRYPT_SETTINGS") == "1"

    def _resolve_secrets(self, data: dict) -> dict:
        for key in data.keys() & self.SENSITIVE_KEYS:
            secret = keyring.get_password(self.service, key)
            if secret is None:
                del data[key]
            else:
                data[key] = secret
        return data

    def _stash_secrets(self, data: dict) -> dict:
        for key in data.keys() & self.SENSITIVE_KEYS:
            keyring.set_password(self.service, key, str(data[key]))
            data[key] = True
        return data

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return self._resolve_secrets(data) if self.encrypt else data

    def save(self, data: dict) -> None:
        out = self._stash_secrets(dict(data)) if self.encrypt else dict(data)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(out, f)

    def settings(self) -> SettingsSchema:
        """Return validated settings with environment overrides applied."""
        data = self.load()
        for env, key in self.ENV_OVERRIDES.items():
            value = os.environ.get(env)
            if value:
                data[key] = value
        return validate_settings(data)


def backend_configured(settings: SettingsSchema) -> bool:
    """Return True when real remote backend credentials are present."""
    url = settings.backend_url or PLACEHOLDER_URL
    key = settings.backend_key or PLACEHOLDER_KEY
    return url != PLACEHOLDER_URL and key != PLACEHOLDER_KEY and url.startswith("http")
