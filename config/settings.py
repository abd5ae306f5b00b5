import os
import json
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from config.constants import DEFAULT_CHAIN_ID, DEFAULT_RPC_URL
from core.exceptions import ConfigValidationError
from core.models import ActivityConfig, ConfigField
from utils.logger import setup_logger

load_dotenv()

SWAP_STRATEGIES = ("router", "wrap")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Параметры процесса из .env / окружения"""

    rpc_url: str = DEFAULT_RPC_URL
    chain_id: int = DEFAULT_CHAIN_ID
    swap_strategy: str = "router"
    nonce_reset_on_cycle_end: bool = True
    activity_config_file: str = "config.json"
    private_keys_file: str = "pk.txt"
    proxies_file: str = "proxy.txt"
    log_level: str = "INFO"
    log_file: Optional[str] = None
    encryption_key: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        swap_strategy = os.getenv('SWAP_STRATEGY', 'router').strip().lower()
        if swap_strategy not in SWAP_STRATEGIES:
            raise ConfigValidationError(
                f"SWAP_STRATEGY must be one of {', '.join(SWAP_STRATEGIES)}, got {swap_strategy!r}")

        try:
            chain_id = int(os.getenv('CHAIN_ID', DEFAULT_CHAIN_ID))
        except ValueError:
            raise ConfigValidationError(f"CHAIN_ID must be an integer, got {os.getenv('CHAIN_ID')!r}")

        return cls(
            rpc_url=os.getenv('RPC_URL', DEFAULT_RPC_URL),
            chain_id=chain_id,
            swap_strategy=swap_strategy,
            nonce_reset_on_cycle_end=_env_bool('NONCE_RESET_ON_CYCLE_END', True),
            activity_config_file=os.getenv('ACTIVITY_CONFIG_FILE', 'config.json'),
            private_keys_file=os.getenv('PRIVATE_KEYS_FILE', 'pk.txt'),
            proxies_file=os.getenv('PROXIES_FILE', 'proxy.txt'),
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
            log_file=os.getenv('LOG_FILE') or None,
            encryption_key=os.getenv('ENCRYPTION_KEY') or None,
        )


class Config:
    """Пользовательские настройки активности (config.json)"""

    def __init__(self, config_path: str = "config.json"):
        self.logger = setup_logger("Config")
        self.config_path = config_path
        self.activity = ActivityConfig()

        config_dir = os.path.dirname(config_path)
        if config_dir:
            os.makedirs(config_dir, exist_ok=True)

        self.load_config()

    def load_config(self) -> ActivityConfig:
        """Загрузка конфигурации из JSON; битый файл уходит в .backup"""
        try:
            if not os.path.exists(self.config_path):
                self.logger.warning(f"⚠️ Config file not found: {self.config_path}")
                self.create_default_config()
                return self.activity

            with open(self.config_path, 'r') as f:
                data = json.load(f)

            if not isinstance(data, dict):
                raise ValueError("config root must be a JSON object")

            self.activity = ActivityConfig.from_dict(data)
            self.logger.info(f"✅ Configuration loaded from {self.config_path}")

        except json.JSONDecodeError as e:
            self.logger.error(f"❌ JSON decode error in config: {e}")
            self.logger.info("🔄 Creating backup and generating new config...")
            self._backup_and_create_config()
        except (OSError, ValueError) as e:
            self.logger.error(f"❌ Failed to load configuration: {e}")
            self._backup_and_create_config()

        return self.activity

    def _backup_and_create_config(self):
        """Создание бэкапа поврежденного конфига и генерация нового"""
        if os.path.exists(self.config_path):
            backup_path = self.config_path + '.backup'
            try:
                os.replace(self.config_path, backup_path)
                self.logger.info(f"💾 Backup created: {backup_path}")
            except OSError as e:
                self.logger.warning(f"⚠️ Failed to back up {self.config_path}: {e}")

        self.create_default_config()

    def create_default_config(self):
        self.activity = ActivityConfig()
        self.save_config()

    def save_config(self) -> bool:
        """Сохранение конфигурации в файл"""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.activity.to_dict(), f, indent=2)
            self.logger.info(f"💾 Configuration saved to {self.config_path}")
            return True
        except OSError as e:
            self.logger.error(f"❌ Failed to save configuration: {e}")
            return False

    def update(self, config_field: ConfigField, *values):
        """Валидация, применение и немедленное сохранение пользовательской правки"""
        result = self.activity.apply(config_field, *values)
        self.save_config()
        self.logger.info(f"✅ {config_field.label} updated")
        return result
