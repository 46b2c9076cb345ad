"""
Configuration models for studio-sync.

Handles the sync directory layout, script naming conventions and global
logging settings.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SyncConfig(BaseModel):
    """Sync daemon configuration with validation"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True
    )

    # Filesystem layout
    sync_dir: Path = Path("sync")
    sourcemap_path: Optional[Path] = Path("sourcemap.json")

    # Script file naming
    script_extension: str = ".luau"
    legacy_extensions: List[str] = Field(default_factory=lambda: [".lua"])
    server_suffix: str = "server"
    client_suffix: str = "client"
    module_suffix: str = "module"
    suffix_module_scripts: bool = True

    # Behaviour
    delete_orphans_on_connect: bool = True
    skip_symlinks: bool = True
    max_concurrent_reads: int = Field(default=32, ge=1, le=256)
    debug_mode: bool = False

    @field_validator('script_extension')
    @classmethod
    def validate_script_extension(cls, v: str) -> str:
        """Validate script extension format"""
        if not v.startswith('.') or len(v) < 2 or '/' in v or '\\' in v:
            raise ValueError('Script extension must start with "." and contain no separators')
        return v.lower()

    @field_validator('legacy_extensions')
    @classmethod
    def validate_legacy_extensions(cls, v: List[str]) -> List[str]:
        """Normalize legacy extension aliases"""
        normalized = []
        for ext in v:
            ext = ext.strip().lower()
            if not ext:
                continue
            if not ext.startswith('.'):
                ext = f".{ext}"
            normalized.append(ext)
        return normalized

    @field_validator('server_suffix', 'client_suffix', 'module_suffix')
    @classmethod
    def validate_suffix(cls, v: str) -> str:
        """Suffixes are bare words placed between name and extension"""
        v = v.lstrip('.')
        if not v or any(ch in v for ch in './\\'):
            raise ValueError('Class suffix must be a non-empty word without dots or separators')
        return v

    def resolve_paths(self, project_path: Path) -> 'SyncConfig':
        """Return a copy with relative paths anchored at the project root"""
        project_path = Path(project_path).resolve()
        update: Dict[str, Any] = {}
        if not self.sync_dir.is_absolute():
            update['sync_dir'] = project_path / self.sync_dir
        if self.sourcemap_path is not None and not self.sourcemap_path.is_absolute():
            update['sourcemap_path'] = project_path / self.sourcemap_path
        return self.model_copy(update=update)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        data = self.model_dump()
        data['sync_dir'] = str(data['sync_dir'])
        if data['sourcemap_path'] is not None:
            data['sourcemap_path'] = str(data['sourcemap_path'])
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SyncConfig':
        """Create from dictionary"""
        data = dict(data)
        if 'sync_dir' in data:
            data['sync_dir'] = Path(str(data['sync_dir']))
        if 'sourcemap_path' in data:
            # Empty or null disables the sourcemap
            value = data['sourcemap_path']
            data['sourcemap_path'] = Path(str(value)) if value else None
        return cls(**data)


class GlobalSettings(BaseSettings):
    """Global application settings with environment variable support"""
    model_config = SettingsConfigDict(
        env_prefix="STUDIO_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Logging
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    log_to_file: bool = False
    log_dir: Path = Field(
        default_factory=lambda: Path.home() / ".studio-sync" / "logs"
    )

    def get_log_file(self) -> Optional[Path]:
        """Get log file path if logging to file is enabled"""
        if not self.log_to_file:
            return None
        self.log_dir.mkdir(parents=True, exist_ok=True)
        return self.log_dir / "studio-sync.log"
