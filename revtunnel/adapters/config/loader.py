"""
Configuration loader with priority: CLI > env > .env file > TOML > defaults
"""
import os
import tomllib
from pathlib import Path
from typing import Dict, Any, Optional

from dotenv import dotenv_values

from ...core.constants import DEFAULT_ENV_FILE, TOML_SECTION
from ...core.exceptions import PreconditionError
from ...domain.tunnel.settings import KNOWN_KEYS, TunnelSettings


class ConfigLoader:
    """
    Configuration loader with priority support.

    Keys are the environment variable names (WG_PORT, SSH_USER,
    ...). TOML files may spell them in lower case, at top level or in a
    [tunnel] table.
    """
    
    def __init__(self, environ: Optional[Dict[str, str]] = None):
        self._environ = os.environ if environ is None else environ
    
    @staticmethod
    def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
        known = set(KNOWN_KEYS)
        return {k.upper(): v for k, v in data.items() if k.upper() in known}
    
    def load_toml(self, path: Path) -> Dict[str, Any]:
        """Load TOML configuration file"""
        if not path.exists():
            raise PreconditionError(f"Configuration file not found: {path}")
        
        try:
            data = tomllib.loads(path.read_text(encoding='utf-8'))
        except tomllib.TOMLDecodeError as e:
            raise PreconditionError(f"Failed to parse TOML configuration: {e}") from e

        section = data.get(TOML_SECTION, {})
        merged = self._normalize(data)
        if isinstance(section, dict):
            merged.update(self._normalize(section))
        return merged
    
    def load_env_file(self, path: Path) -> Dict[str, Any]:
        """Load KEY=VALUE pairs from a .env file (missing file: empty)"""
        if not path.exists():
            return {}
        return self._normalize({k: v for k, v in dotenv_values(path).items() if v is not None})
    
    def load_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables"""
        return {k: self._environ[k] for k in KNOWN_KEYS if self._environ.get(k)}
    
    def merge_configs(self, *configs: Dict[str, Any]) -> Dict[str, Any]:
        """Later configs override earlier ones (None values are ignored)"""
        result: Dict[str, Any] = {}
        for config in configs:
            result.update({k: v for k, v in config.items() if v is not None})
        return result
    
    def resolve_env_file(self, toml_path: Optional[Path], env_file: Optional[Path]) -> Path:
        if env_file is not None:
            return env_file
        if toml_path is not None:
            candidate = toml_path.parent / DEFAULT_ENV_FILE
            if candidate.exists():
                return candidate
        return Path.cwd() / DEFAULT_ENV_FILE
    
    def load(
        self,
        toml_path: Optional[Path] = None,
        env_file: Optional[Path] = None,
        cli_overrides: Optional[Dict[str, Any]] = None,
        use_env: bool = True,
    ) -> Dict[str, Any]:
        """
        Load and merge configuration.
        
        Args:
            toml_path: Path to TOML configuration file
            env_file: Path to .env file (default: next to toml_path, else ./.env)
            cli_overrides: CLI parameter overrides
            use_env: Whether to load from environment variables
        
        Returns:
            Merged configuration dictionary
        """
        configs = []
        
        if toml_path:
            configs.append(self.load_toml(toml_path))
        
        configs.append(self.load_env_file(self.resolve_env_file(toml_path, env_file)))
        
        if use_env:
            configs.append(self.load_env())
        
        if cli_overrides:
            configs.append(self._normalize(cli_overrides))
        
        return self.merge_configs(*configs)

    def load_settings(self, **kwargs) -> TunnelSettings:
        """load() followed by validation"""
        return TunnelSettings.from_mapping(self.load(**kwargs))
