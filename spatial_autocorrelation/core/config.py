"""
Configuration management for spatial autocorrelation analysis.
"""
import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional


DEFAULT_CONFIG: Dict[str, Any] = {
    'weights': {
        'style': 'W',
        'zero_policy': 'reject',
        'contiguity': {
            'criterion': 'queen',
            'tolerance': 1e-9,
        },
    },
    'significance': {
        'permutations': 599,
        'seed': None,
        'alternative': 'two-sided',
        'assumption': 'randomization',
        'n_jobs': 1,
        'chunk_size': 100,
    },
    'logging': {
        'log_level': 'INFO',
        'logs_dir': None,
        'json_format': False,
        'verbose_libraries': {
            'shapely': 'WARNING',
            'fiona': 'WARNING',
        },
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively overlay ``override`` on ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """Configuration manager for the application."""
    
    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration from file or defaults."""
        self.config_path = config_path
        self.config = self._load_config()
        
    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file on top of the defaults."""
        if self.config_path and os.path.exists(self.config_path):
            with open(self.config_path, 'r') as f:
                loaded = yaml.safe_load(f) or {}
            return _merge(DEFAULT_CONFIG, loaded)
        
        return copy.deepcopy(DEFAULT_CONFIG)
    
    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation."""
        keys = key_path.split('.')
        result = self.config
        
        for key in keys:
            if isinstance(result, dict) and key in result:
                result = result[key]
            else:
                return default
                
        return result
    
    def get_path(self, key_path: str) -> Path:
        """Get a path from configuration, ensuring it exists."""
        path_str = self.get(key_path)
        if not path_str:
            raise ValueError(f"Path configuration '{key_path}' not found")
            
        path = Path(path_str)
        path.mkdir(parents=True, exist_ok=True)
        return path
    
    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation."""
        keys = key_path.split('.')
        target = self.config
        
        for key in keys[:-1]:
            if key not in target:
                target[key] = {}
            target = target[key]
                
        target[keys[-1]] = value
    
    def save(self, path: Optional[str] = None) -> None:
        """Save current configuration to file."""
        save_path = path or self.config_path
        if not save_path:
            raise ValueError("No path specified for saving configuration")
            
        with open(save_path, 'w') as f:
            yaml.dump(self.config, f, default_flow_style=False)


# Global configuration instance
config = Config()


def get_config() -> Config:
    """Return the active global configuration."""
    return config


def initialize_config(config_path: Optional[str] = None) -> Config:
    """Initialize the global configuration."""
    global config
    config = Config(config_path)
    return config
