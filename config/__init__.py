import os
import json
import configparser
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from shared.utils import COMMAND_PLACEHOLDER

from .logging_config import setup_app_logging
from .settings import (
    AISettings,
    ArchitectSettings,
    ExtensionDescriptor,
    FallbackSettings,
    LoggingSettings,
    PromptSettings,
    ProviderConfig,
    ServerSettings,
    Settings,
    SettingsHandle,
)

# Load environment variables from .env file
load_dotenv()

# Get the config directory path (where this file is located)
CONFIG_DIR = Path(__file__).parent
PROJECT_ROOT = CONFIG_DIR.parent

DEFAULT_CONFIG_PATH = CONFIG_DIR / 'config.json'
DEFAULT_INI_PATH = '/etc/fazai/fazai.conf'

# Prompt files live next to config.json; each maps to a PromptSettings field
PROMPT_FILES = {
    'system': 'system_prompt.txt',
    'architect': 'architect_prompt.txt',
    'architect_fallback': 'architect_fallback_prompt.txt',
    'mcps': 'mcps_system_prompt.txt',
}

logger = logging.getLogger(__name__)


# --- Helper function to get config value from a raw config dict or environment variable ---
def get_config_value(raw: Dict[str, Any], json_keys: list, env_var_name: str, default_value: Any = None):
    """
    Retrieves a configuration value.
    Priority:
    1. Environment variable (if env_var_name is provided and variable is set).
    2. Value from the raw config dictionary (using json_keys).
    3. default_value.
    """
    if env_var_name:
        env_value = os.getenv(env_var_name)
        if env_value is not None:
            # Attempt to match type of default_value if it's int or bool
            if isinstance(default_value, bool):
                if env_value.lower() == 'true': return True
                if env_value.lower() == 'false': return False
            elif isinstance(default_value, int):
                try:
                    return int(env_value)
                except ValueError:
                    pass # Fall through to JSON or default if not a valid int
            elif isinstance(default_value, float):
                try:
                    return float(env_value)
                except ValueError:
                    pass
            else:
                return env_value

    current_level = raw
    try:
        for key in json_keys:
            current_level = current_level[key]
        if isinstance(current_level, (str, int, bool, float, list, dict)):
            return current_level
    except (KeyError, TypeError):
        pass # Key not found or structure not as expected, fall through to default

    return default_value


def _parse_bool(value: str) -> bool:
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def apply_ini_overrides(raw: Dict[str, Any], ini_path: str) -> Dict[str, Any]:
    """
    Overlay values from an INI-style daemon config file onto the raw JSON config.

    Section [ai_provider] may set provider, enable_fallback, max_retries and retry_delay.
    A section named after a registered provider may override that provider's keys;
    keys the provider does not already define are ignored. A missing file is a no-op.
    """
    path = Path(ini_path)
    if not path.is_file():
        logger.info("No INI overlay at %s, using JSON configuration only", ini_path)
        return raw

    parser = configparser.ConfigParser(interpolation=None)
    parser.read(path, encoding='utf-8')

    ai = raw.setdefault('ai', {})
    if parser.has_section('ai_provider'):
        section = parser['ai_provider']
        if 'provider' in section:
            ai['default_provider'] = section['provider']
        if 'enable_fallback' in section:
            ai['enable_fallback'] = _parse_bool(section['enable_fallback'])
        for key, cast in (('max_retries', int), ('retry_delay', float)):
            if key in section:
                try:
                    ai[key] = cast(section[key])
                except ValueError:
                    logger.warning("Ignoring invalid %s=%r in %s", key, section[key], ini_path)

    providers = ai.setdefault('providers', {})
    for name, provider in providers.items():
        if not parser.has_section(name):
            continue
        for key, value in parser[name].items():
            if key in provider:
                provider[key] = value

    logger.info("Applied INI overlay from %s", ini_path)
    return raw


def load_raw_config(config_path: Optional[Path] = None, ini_path: Optional[str] = None) -> Dict[str, Any]:
    """Read config.json and apply the optional INI overlay."""
    config_path = Path(config_path or os.getenv('FAZAI_CONFIG_PATH') or DEFAULT_CONFIG_PATH)
    with open(config_path, 'r', encoding='utf-8') as f:
        raw = json.load(f)
    return apply_ini_overrides(raw, ini_path or os.getenv('FAZAI_CONF', DEFAULT_INI_PATH))


def load_prompts(prompt_dir: Path = CONFIG_DIR) -> PromptSettings:
    """Load prompt templates from text files, keeping built-in defaults for missing ones."""
    values = {}
    for field, filename in PROMPT_FILES.items():
        prompt_path = Path(prompt_dir) / filename
        try:
            with open(prompt_path, 'r', encoding='utf-8') as f:
                values[field] = f.read().strip()
        except FileNotFoundError:
            logger.warning("Prompt file not found: %s, using built-in default", prompt_path)
    prompts = PromptSettings(**values)
    for field in ('architect', 'architect_fallback'):
        if COMMAND_PLACEHOLDER not in getattr(prompts, field):
            logger.warning("Prompt %s has no %s placeholder; the request will not reach the backend", field, COMMAND_PLACEHOLDER)
    return prompts


def build_settings(raw: Dict[str, Any], prompts: Optional[PromptSettings] = None) -> Settings:
    """
    Turn a raw configuration mapping into a validated, immutable Settings value.

    Environment variables take precedence over file values for the AI switches and
    for logging, mirroring how the daemon has always been tuned in deployment.
    """
    ai_raw = raw.get('ai', {})
    providers = {
        name: ProviderConfig(name=name, **values)
        for name, values in (ai_raw.get('providers') or {}).items()
    }

    ai = AISettings(
        default_provider=get_config_value(raw, ['ai', 'default_provider'], 'DEFAULT_PROVIDER', 'openrouter'),
        enable_fallback=get_config_value(raw, ['ai', 'enable_fallback'], 'ENABLE_FALLBACK', True),
        max_retries=get_config_value(raw, ['ai', 'max_retries'], 'MAX_RETRIES', 3),
        retry_delay=float(get_config_value(raw, ['ai', 'retry_delay'], 'RETRY_DELAY', 2.0)),
        continue_on_error=get_config_value(raw, ['ai', 'continue_on_error'], 'CONTINUE_ON_ERROR', True),
        enable_architecting=get_config_value(raw, ['ai', 'enable_architecting'], 'ENABLE_ARCHITECTING', True),
        request_timeout=float(get_config_value(raw, ['ai', 'request_timeout'], None, 60.0)),
        providers=providers,
    )

    logging_settings = LoggingSettings(
        level=get_config_value(raw, ['logging', 'level'], 'LOG_LEVEL', 'INFO'),
        file_path=get_config_value(raw, ['logging', 'file_path'], 'LOG_FILE_PATH', 'logs/fazai.log'),
        max_bytes=get_config_value(raw, ['logging', 'max_bytes'], 'LOG_MAX_BYTES', 5*1024*1024), # 5MB
        backup_count=get_config_value(raw, ['logging', 'backup_count'], 'LOG_BACKUP_COUNT', 3),
        date_format=get_config_value(raw, ['logging', 'date_format'], 'LOG_DATE_FORMAT', '%Y-%m-%d %H:%M:%S'),
    )

    settings = Settings(
        ai=ai,
        architect=ArchitectSettings(**raw.get('architect', {})),
        fallback=FallbackSettings(**raw.get('fallback', {})),
        extensions=tuple(ExtensionDescriptor(**item) for item in raw.get('extensions', [])),
        prompts=prompts or PromptSettings(),
        logging=logging_settings,
        server=ServerSettings(**raw.get('server', {})),
        cors_allow_origins=tuple(raw.get('cors', {}).get('allow_origins', ['*'])),
    )
    settings.validate_providers()
    return settings


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Load settings from disk: JSON base, INI overlay, environment overrides, prompt files."""
    return build_settings(load_raw_config(config_path), prompts=load_prompts())


def reload_settings() -> Settings:
    """
    Re-read configuration from disk and swap it into the process-wide handle.

    The new value is fully built and validated before the swap; if loading fails the
    previous settings stay in place and the error propagates to the caller.
    """
    new_settings = load_settings()
    SETTINGS.swap(new_settings)
    setup_app_logging(config=new_settings.logging.model_dump())
    return new_settings


SETTINGS = SettingsHandle(load_settings())

# --- Setup Application Logging ---
setup_app_logging(config=SETTINGS.current().logging.model_dump())

config_init_logger = logging.getLogger(__name__)
config_init_logger.info("[config_init] Logging initialized from config/__init__.py using setup_app_logging.")
