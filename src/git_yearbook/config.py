"""Configuration management for git-yearbook."""

import json
from pathlib import Path
from typing import Any

from rich import print


class Config:
    """Manage git-yearbook configuration and token storage."""

    def __init__(self) -> None:
        """Initialize config with default paths."""
        self.config_dir = Path.home() / ".git-yearbook"
        self.config_file = self.config_dir / "config.json"
        self._ensure_config_dir()

    def _ensure_config_dir(self) -> None:
        """Create config directory if it doesn't exist."""
        self.config_dir.mkdir(exist_ok=True)
        # Set restrictive permissions on the config directory
        self.config_dir.chmod(0o700)

    def get_token(self) -> str | None:
        """Get stored GitHub token.

        Returns:
            GitHub token if stored, None otherwise
        """
        return self._load_config().get("github_token")

    def set_token(self, token: str) -> None:
        """Store GitHub token securely.

        Args:
            token: GitHub Personal Access Token to store
        """
        config_data = self._load_config()
        config_data["github_token"] = token
        self._save_config(config_data)
        print(f"[green]✓[/green] Token stored securely in {self.config_file}")

    def remove_token(self) -> None:
        """Remove stored GitHub token."""
        config_data = self._load_config()
        config_data.pop("github_token", None)
        self._save_config(config_data)
        print("[green]✓[/green] Token removed from local storage")

    def get_cache_dir(self) -> Path:
        """Directory holding cached commit lists."""
        override = self._load_config().get("cache_dir")
        if override:
            return Path(override).expanduser()
        return Path.home() / ".cache" / "git-yearbook"

    def set_cache_dir(self, cache_dir: Path) -> None:
        config_data = self._load_config()
        config_data["cache_dir"] = str(cache_dir)
        self._save_config(config_data)

    def _load_config(self) -> dict[str, Any]:
        """Load existing config or return empty dict."""
        if not self.config_file.exists():
            return {}

        try:
            with self.config_file.open() as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _save_config(self, config_data: dict[str, Any]) -> None:
        if not config_data:
            # Remove empty config file
            self.config_file.unlink(missing_ok=True)
            return

        with self.config_file.open("w") as f:
            json.dump(config_data, f, indent=2)

        # Set restrictive permissions on the config file
        self.config_file.chmod(0o600)

    def get_config_info(self) -> dict[str, Any]:
        """Get information about current configuration.

        Returns:
            Dictionary with config status information
        """
        config_exists = self.config_file.exists()

        return {
            "config_file": str(self.config_file),
            "config_exists": config_exists,
            "has_token": self.get_token() is not None,
            "cache_dir": str(self.get_cache_dir()),
            "config_file_permissions": oct(self.config_file.stat().st_mode)[-3:]
            if config_exists
            else None,
        }
