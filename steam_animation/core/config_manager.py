import asyncio
from pathlib import Path
from typing import Dict, Iterable, Optional

import aiofiles

from steam_animation.core.logging_utils import get_module_logger


logger = get_module_logger("ConfigManager")


class ConfigManager:
    """Reads ``key = value`` configuration files without executing them.

    Keys are case-insensitive (stored lower-case), ``#`` starts a comment
    outside of quotes, and a value may be wrapped in single or double quotes.
    """

    def __init__(self):
        self.lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Parsing

    @staticmethod
    def _parse_value(raw: str) -> str:
        value = raw.strip()
        if value[:1] in ('"', "'"):
            end = value.find(value[0], 1)
            if end != -1:
                return value[1:end]
        if '#' in value:
            value = value.split('#', 1)[0].strip()
        return value

    def parse_lines(self, lines: Iterable[str]) -> Dict[str, str]:
        config: Dict[str, str] = {}

        for raw_line in lines:
            line = raw_line.strip()
            if not line or line.startswith('#'):
                continue
            if line.startswith('export '):
                line = line[len('export '):].lstrip()
            if '=' not in line:
                logger.debug("Ignoring malformed config line: %s", line)
                continue

            key, value = line.split('=', 1)
            key = key.strip().lower()
            if not key:
                continue
            config[key] = self._parse_value(value)

        return config

    # ------------------------------------------------------------------
    # Reading

    def read_config(self, config_path: Path) -> Dict[str, str]:
        """Read a config file synchronously; a missing file reads as empty."""
        if not config_path.exists():
            return {}

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                return self.parse_lines(f)
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Failed to read config %s: %s", config_path, e)
            return {}

    async def read_config_async(self, config_path: Path) -> Dict[str, str]:
        """Async version for use inside the event loop."""
        if not await asyncio.to_thread(config_path.exists):
            return {}

        async with self.lock:
            try:
                async with aiofiles.open(config_path, 'r', encoding='utf-8') as f:
                    lines = await f.readlines()
            except (OSError, UnicodeDecodeError) as e:
                logger.error("Failed to read config %s: %s", config_path, e)
                return {}

        return self.parse_lines(lines)

    async def write_text_async(self, config_path: Path, content: str) -> bool:
        async with self.lock:
            try:
                await asyncio.to_thread(config_path.parent.mkdir, parents=True, exist_ok=True)
                async with aiofiles.open(config_path, 'w', encoding='utf-8') as f:
                    await f.write(content)
                return True
            except OSError as e:
                logger.error("Failed to write config %s: %s", config_path, e, exc_info=True)
                return False

    # ------------------------------------------------------------------
    # Typed accessors

    def get_int(
        self,
        config: Dict[str, str],
        key: str,
        default: int = 0,
        *,
        minimum: Optional[int] = None,
        maximum: Optional[int] = None,
    ) -> int:
        if key not in config or config[key] == "":
            return default

        try:
            value = int(config[key])
        except ValueError:
            logger.warning("Invalid int value for %s: %s, using default %d", key, config[key], default)
            return default

        if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
            logger.warning(
                "Value for %s out of range (%s..%s): %d, using default %d",
                key, minimum, maximum, value, default,
            )
            return default
        return value

    def get_str(self, config: Dict[str, str], key: str, default: str = "") -> str:
        return config.get(key, default)

    def get_path(self, config: Dict[str, str], key: str, default: Optional[Path] = None) -> Optional[Path]:
        value = config.get(key, "")
        if not value:
            return default
        return Path(value).expanduser()
