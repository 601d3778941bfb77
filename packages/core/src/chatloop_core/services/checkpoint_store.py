"""
File-based checkpoints of chat history, so a conversation can be saved
under a tag and resumed later.
"""

import json
import logging
import re
from pathlib import Path

import aiofiles
import aiofiles.os

from chatloop_core.config import Config
from chatloop_core.core.history import validate_history
from chatloop_core.core.types import Content

logger = logging.getLogger(__name__)

CHECKPOINT_FILE_NAME = "checkpoint.json"
_TAG_PREFIX = "checkpoint-"
_UNSAFE_TAG_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class ChatCheckpointStore:
    def __init__(self, base_dir: Path | str):
        self.base_dir = Path(base_dir)

    @classmethod
    def from_config(cls, config: Config) -> "ChatCheckpointStore":
        return cls(config.get_checkpoint_dir())

    def _get_checkpoint_path(self, tag: str | None = None) -> Path:
        if not tag:
            return self.base_dir / CHECKPOINT_FILE_NAME
        safe_tag = _UNSAFE_TAG_CHARS.sub("_", tag)
        return self.base_dir / f"{_TAG_PREFIX}{safe_tag}.json"

    async def save(self, history: list[Content], tag: str | None = None) -> Path:
        validate_history(history)
        await aiofiles.os.makedirs(self.base_dir, exist_ok=True)
        path = self._get_checkpoint_path(tag)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(history, indent=2))
        logger.debug(f"Saved checkpoint with {len(history)} turns to {path}")
        return path

    async def load(self, tag: str | None = None) -> list[Content]:
        """Returns the saved history, or [] if missing or unreadable."""
        path = self._get_checkpoint_path(tag)
        if not await aiofiles.os.path.exists(path):
            return []

        try:
            async with aiofiles.open(path, encoding="utf-8") as f:
                content = await f.read()
            history = json.loads(content)
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON in checkpoint file {path}")
            return []

        if not isinstance(history, list):
            logger.warning(f"Checkpoint file {path} does not hold a history")
            return []
        return history

    async def list_tags(self) -> list[str]:
        if not await aiofiles.os.path.isdir(self.base_dir):
            return []
        names = await aiofiles.os.listdir(self.base_dir)
        return sorted(
            name[len(_TAG_PREFIX) : -len(".json")]
            for name in names
            if name.startswith(_TAG_PREFIX) and name.endswith(".json")
        )

    async def delete(self, tag: str | None = None) -> bool:
        path = self._get_checkpoint_path(tag)
        if not await aiofiles.os.path.exists(path):
            return False
        await aiofiles.os.remove(path)
        return True
