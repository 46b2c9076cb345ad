"""
Default configuration values for studio-sync.

Centralized defaults that can be overridden by environment variables or config files.
"""

from typing import Any, Dict

# Project-local directory holding the config file
CONFIG_DIR_NAME = ".studio-sync"
CONFIG_FILE_NAME = "config.json"

# Global default settings
DEFAULT_SETTINGS = {
    # Filesystem layout
    "sync": {
        "sync_dir": "sync",
        "sourcemap_path": "sourcemap.json",
        "delete_orphans_on_connect": True,
        "skip_symlinks": True,
        "max_concurrent_reads": 32
    },

    # Script file naming
    "naming": {
        "script_extension": ".luau",
        "legacy_extensions": [".lua"],
        "server_suffix": "server",
        "client_suffix": "client",
        "module_suffix": "module",
        "suffix_module_scripts": True
    },

    # Logging
    "logging": {
        "debug_mode": False
    }
}

# Environment variable mappings (flat SyncConfig field names)
ENV_VAR_MAPPING = {
    'STUDIO_SYNC_DIR': 'sync_dir',
    'STUDIO_SYNC_SOURCEMAP_PATH': 'sourcemap_path',
    'STUDIO_SYNC_SCRIPT_EXTENSION': 'script_extension',
    'STUDIO_SYNC_SUFFIX_MODULE_SCRIPTS': 'suffix_module_scripts',
    'STUDIO_SYNC_DELETE_ORPHANS': 'delete_orphans_on_connect',
    'STUDIO_SYNC_SKIP_SYMLINKS': 'skip_symlinks',
    'STUDIO_SYNC_MAX_CONCURRENT_READS': 'max_concurrent_reads',
    'STUDIO_SYNC_DEBUG': 'debug_mode'
}


def get_default_sync_config() -> Dict[str, Any]:
    """Get the flat default configuration accepted by SyncConfig"""
    return {
        'sync_dir': DEFAULT_SETTINGS['sync']['sync_dir'],
        'sourcemap_path': DEFAULT_SETTINGS['sync']['sourcemap_path'],
        'script_extension': DEFAULT_SETTINGS['naming']['script_extension'],
        'legacy_extensions': list(DEFAULT_SETTINGS['naming']['legacy_extensions']),
        'server_suffix': DEFAULT_SETTINGS['naming']['server_suffix'],
        'client_suffix': DEFAULT_SETTINGS['naming']['client_suffix'],
        'module_suffix': DEFAULT_SETTINGS['naming']['module_suffix'],
        'suffix_module_scripts': DEFAULT_SETTINGS['naming']['suffix_module_scripts'],
        'delete_orphans_on_connect': DEFAULT_SETTINGS['sync']['delete_orphans_on_connect'],
        'skip_symlinks': DEFAULT_SETTINGS['sync']['skip_symlinks'],
        'max_concurrent_reads': DEFAULT_SETTINGS['sync']['max_concurrent_reads'],
        'debug_mode': DEFAULT_SETTINGS['logging']['debug_mode']
    }
