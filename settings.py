"""
Runtime settings: defaults < YAML config file < environment variables < CLI flags.
"""
import os
from typing import Any, Dict, Optional

import yaml

from errors import ConfigError
from normalize.dates import parse_team_emails

# looked up in the working directory when no --config is given
CONFIG_FILENAME = 'linear_report.yaml'

DEFAULTS: Dict[str, Any] = {
    'api_key': None,
    'access_token': None,
    'team_emails': [],
    'days_back': 30,
    'page_size': 250,
    'activity_page_size': 100,
    'timeout': 30.0,
    'max_retries': 3,
    'cache_path': None,
    # seconds; 0 or null keeps cached responses forever
    'cache_ttl': 3600.0,
    'reports_dir': 'reports',
    'workers': 1,
    'log_level': 'WARNING',
    'debug_pr_metadata': False,
}

# setting -> (environment variable, converter)
ENV_VARS = {
    'api_key': ('LINEAR_API_KEY', str),
    'access_token': ('LINEAR_ACCESS_TOKEN', str),
    'team_emails': ('TEAM_EMAILS', parse_team_emails),
    'days_back': ('TEAM_DAYS_BACK', int),
    'timeout': ('LINEAR_TIMEOUT', float),
    'max_retries': ('LINEAR_MAX_RETRIES', int),
    'cache_path': ('LINEAR_CACHE', str),
    'cache_ttl': ('LINEAR_CACHE_TTL', float),
    'reports_dir': ('LINEAR_REPORTS_DIR', str),
    'workers': ('LINEAR_WORKERS', int),
    'log_level': ('LINEAR_LOG_LEVEL', str),
    'debug_pr_metadata': ('LINEAR_DEBUG_PR_METADATA', lambda v: v.strip().lower() in ('1', 'true', 'yes')),
}


def load_config_file(path: Optional[str] = None) -> Dict[str, Any]:
    """Read the YAML config file. A missing default file is fine; a missing explicit path is not."""
    explicit = bool(path)
    path = path or os.path.join(os.getcwd(), CONFIG_FILENAME)
    if not os.path.exists(path):
        if explicit:
            raise ConfigError(f"Config file not found at: {path}")
        return {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            doc = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as ex:
        raise ConfigError(f"Failed to load config from {path}: {ex}") from ex
    if not isinstance(doc, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    unknown = set(doc) - set(DEFAULTS)
    if unknown:
        raise ConfigError(f"Unknown settings in {path}: {', '.join(sorted(unknown))}")
    if isinstance(doc.get('team_emails'), str):
        doc['team_emails'] = parse_team_emails(doc['team_emails'])
    return doc


def _from_env(environ) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for key, (var, convert) in ENV_VARS.items():
        raw = environ.get(var)
        if raw is None or raw == '':
            continue
        try:
            values[key] = convert(raw)
        except ValueError as ex:
            raise ConfigError(f"Invalid value for {var}: {raw!r}") from ex
    return values


def load_settings(config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None, environ=None) -> Dict[str, Any]:
    """Merge every settings source; None-valued overrides are ignored."""
    settings = dict(DEFAULTS)
    settings.update(load_config_file(config_path))
    settings.update(_from_env(os.environ if environ is None else environ))
    for k, v in (overrides or {}).items():
        if v is not None:
            settings[k] = v
    return settings


def require_credentials(settings: Dict[str, Any]):
    if not settings.get('api_key') and not settings.get('access_token'):
        raise ConfigError('Missing credentials: set LINEAR_API_KEY or LINEAR_ACCESS_TOKEN (env, config file or --api-key)')
