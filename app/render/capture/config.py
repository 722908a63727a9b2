"""Configuration system for the render pipeline.

This module loads ``config/capture.yaml``, validates it with pydantic,
applies the per-environment overrides selected by ``PAGEPRESS_ENV`` and
the operator environment variables, and builds the runtime objects:
browser config, engine config, readiness defaults and target resolver.

Environment variables:
    PAGEPRESS_ENV                   production | staging | development | test
    PAGEPRESS_CONFIG                Path to an alternative YAML file
    PAGEPRESS_URL_ALLOWLIST         Comma separated allowlist entries
    PAGEPRESS_ALLOWLIST_POLICY      origin | prefix
    PAGEPRESS_FORCE_HOST_INTERNAL   1/true rewrites loopback targets
    PAGEPRESS_INTERNAL_HOST         Hostname loopback targets are rewritten to
    PAGEPRESS_CORS_ORIGINS          Comma separated CORS origins
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

from .browser_factory import BrowserConfig, BrowserEngineType
from .engine import CaptureEngineConfig
from .page_session import WaitUntil
from ..models.capture import ReadinessTimeouts, ReadyStrategy
from ..utils.target_resolver import DEFAULT_INTERNAL_HOST, MatchPolicy, TargetResolver, UrlAllowlist

logger = logging.getLogger(__name__)

VALID_ENVIRONMENTS = {'production', 'staging', 'development', 'test'}
TRUTHY = {'1', 'true', 'yes', 'on'}


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(',') if item.strip()]


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    merged.update(override or {})
    return merged


class CaptureConfig(BaseModel):
    """Root configuration for the render pipeline."""

    environment: str = Field(default="production", description="Environment name")
    browser: Dict[str, Any] = Field(default_factory=dict, description="Browser configuration")
    engine: Dict[str, Any] = Field(default_factory=dict, description="Engine configuration")
    readiness: Dict[str, Any] = Field(default_factory=dict, description="Readiness defaults")
    policy: Dict[str, Any] = Field(default_factory=dict, description="Target and CORS policy")
    environments: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="Environment-specific overrides"
    )
    env_overrides: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="Overrides from PAGEPRESS_* variables, applied last"
    )

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        if v not in VALID_ENVIRONMENTS:
            raise ValueError(f"Environment must be one of: {VALID_ENVIRONMENTS}")
        return v

    def section(self, name: str) -> Dict[str, Any]:
        """Get a config section with environment and variable overrides applied."""
        base = getattr(self, name)
        env_config = self.environments.get(self.environment, {})
        return _merge(_merge(base, env_config.get(name, {})), self.env_overrides.get(name, {}))

    def get_browser_config(self) -> BrowserConfig:
        """Get browser configuration with environment overrides applied."""
        config = self.section('browser')
        engine_name = str(config.get('engine', 'chromium')).upper()

        options: Dict[str, Any] = dict(
            engine=getattr(BrowserEngineType, engine_name, BrowserEngineType.CHROMIUM),
            headless=config.get('headless', True),
            viewport={
                'width': config.get('window_width', 1280),
                'height': config.get('window_height', 900),
            },
            device_scale_factor=config.get('device_scale_factor', 2),
            user_agent=config.get('user_agent'),
            timezone=config.get('timezone'),
            locale=config.get('locale'),
            ignore_https_errors=config.get('ignore_https_errors', False),
            java_script_enabled=config.get('java_script_enabled', True),
            launch_retries=config.get('launch_retries', 2),
            launch_backoff_ms=config.get('launch_backoff_ms', 1000),
            max_concurrent_pages=config.get('max_concurrent_pages', 8),
            page_acquire_timeout_ms=config.get('page_acquire_timeout_ms', 30000),
        )
        if 'args' in config:
            options['args'] = list(config['args'] or [])

        return BrowserConfig(**options)

    def get_engine_config(self) -> CaptureEngineConfig:
        """Get engine configuration with environment overrides applied."""
        config = self.section('engine')

        artifacts_dir = config.get('artifacts_dir')

        return CaptureEngineConfig(
            browser_config=self.get_browser_config(),
            request_deadline_ms=config.get('request_deadline_ms'),
            step_grace_ms=config.get('step_grace_ms', 2000),
            wait_until=config.get('wait_until', WaitUntil.DOMCONTENTLOADED),
            auth_markers=tuple(config.get('auth_markers', ('login', 'auth'))),
            enable_page_observer=config.get('enable_page_observer', True),
            diagnostics_enabled=config.get('diagnostics_enabled', True),
            artifacts_dir=Path(artifacts_dir) if artifacts_dir else None,
            diagnostics_timeout_ms=config.get('diagnostics_timeout_ms', 10000),
            warm_up=config.get('warm_up', True),
        )

    def get_readiness_timeouts(self) -> ReadinessTimeouts:
        """Default per-step timeouts; a request's ``timeoutMs`` overrides navigation."""
        return ReadinessTimeouts(**self.section('readiness').get('timeouts', {}))

    @property
    def default_strategy(self) -> ReadyStrategy:
        return ReadyStrategy(self.section('readiness').get('strategy', ReadyStrategy.NORMAL.value))

    @property
    def default_settle_delay_ms(self) -> int:
        return int(self.section('readiness').get('settle_delay_ms', 300))

    @property
    def capture_timeout_ms(self) -> int:
        return int(self.section('engine').get('capture_timeout_ms', 60000))

    @property
    def page_format(self) -> Optional[str]:
        return self.section('engine').get('page_format')

    def get_allowlist(self) -> UrlAllowlist:
        policy = self.section('policy')
        return UrlAllowlist(
            entries=policy.get('url_allowlist', []),
            policy=MatchPolicy(policy.get('allowlist_policy', MatchPolicy.ORIGIN.value))
        )

    def get_target_resolver(self) -> TargetResolver:
        """Build the target resolver from the policy section."""
        policy = self.section('policy')
        return TargetResolver(
            allowlist=self.get_allowlist(),
            force_internal_host=bool(policy.get('force_internal_host', False)),
            internal_host=policy.get('internal_host', DEFAULT_INTERNAL_HOST),
        )

    @property
    def cors_origins(self) -> List[str]:
        return list(self.section('policy').get('cors_origins', []))


def apply_env_overrides(config_data: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Record operator environment variables as the final override layer."""
    environ = os.environ if environ is None else environ
    policy: Dict[str, Any] = {}

    if 'PAGEPRESS_URL_ALLOWLIST' in environ:
        policy['url_allowlist'] = _split_list(environ['PAGEPRESS_URL_ALLOWLIST'])

    if environ.get('PAGEPRESS_ALLOWLIST_POLICY'):
        policy['allowlist_policy'] = environ['PAGEPRESS_ALLOWLIST_POLICY'].strip().lower()

    if 'PAGEPRESS_FORCE_HOST_INTERNAL' in environ:
        policy['force_internal_host'] = environ['PAGEPRESS_FORCE_HOST_INTERNAL'].strip().lower() in TRUTHY

    if environ.get('PAGEPRESS_INTERNAL_HOST'):
        policy['internal_host'] = environ['PAGEPRESS_INTERNAL_HOST'].strip()

    if 'PAGEPRESS_CORS_ORIGINS' in environ:
        policy['cors_origins'] = _split_list(environ['PAGEPRESS_CORS_ORIGINS'])

    if policy:
        config_data['env_overrides'] = {'policy': policy}
    return config_data


class CaptureConfigManager:
    """Manager for capture configuration loading and caching."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to capture config YAML file. Defaults to
                ``PAGEPRESS_CONFIG`` or config/capture.yaml
        """
        self._explicit_path = config_path is not None or bool(os.environ.get('PAGEPRESS_CONFIG'))

        if config_path is None:
            config_path = os.environ.get('PAGEPRESS_CONFIG')

        if config_path is None:
            project_root = Path(__file__).parent.parent.parent.parent
            config_path = project_root / "config" / "capture.yaml"

        self.config_path = Path(config_path)
        self._config: Optional[CaptureConfig] = None
        self._loaded_env = None

    def load_config(self, force_reload: bool = False) -> CaptureConfig:
        """Load configuration from YAML file.

        A missing default file yields built-in defaults; a missing explicit
        file is an error.

        Raises:
            FileNotFoundError: If an explicitly configured file doesn't exist
            ValueError: If the YAML or its validation fails
        """
        current_env = os.environ.get('PAGEPRESS_ENV', 'production')

        if self._config is not None and not force_reload and current_env == self._loaded_env:
            return self._config

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {self.config_path}: {e}")
        elif self._explicit_path:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        else:
            logger.info(f"No config file at {self.config_path}; using built-in defaults")
            config_data = {}

        if 'PAGEPRESS_ENV' in os.environ:
            config_data['environment'] = current_env

        config_data = apply_env_overrides(config_data)

        try:
            self._config = CaptureConfig(**config_data)
        except Exception as e:
            raise ValueError(f"Configuration validation failed: {e}")

        self._loaded_env = current_env
        return self._config

    @property
    def config(self) -> CaptureConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            return self.load_config()
        return self._config

    @property
    def environment(self) -> str:
        """Get current environment."""
        return self.config.environment


# Global config manager instance
_config_manager: Optional[CaptureConfigManager] = None


def get_config(config_path: Optional[Union[str, Path]] = None) -> CaptureConfigManager:
    """Get global capture configuration manager.

    Args:
        config_path: Path to config file (only used on first call)

    Returns:
        Global CaptureConfigManager instance
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = CaptureConfigManager(config_path)
    return _config_manager


def reset_config() -> None:
    """Forget the global configuration manager."""
    global _config_manager
    _config_manager = None
