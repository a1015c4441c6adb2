import logging
import os
from pathlib import Path
from typing import List, Optional

import yaml

logger = logging.getLogger(__name__)


class Config:
    """Central configuration loader for decksync."""

    _loaded = False
    _log_level: str = "INFO"
    _llm_id: Optional[str] = None

    BASE_DIR = Path(__file__).resolve().parent.parent.parent

    APPLICATION_YML_PATH = Path(
        os.getenv(
            "APPLICATION_YML_PATH", BASE_DIR.parent / "application_local.decksync.yml"
        )
    )
    LLM_CONFIG_PATH = Path(
        os.getenv("LLM_CONFIG_PATH", BASE_DIR.parent / "llm_config.decksync.yml")
    )
    UPLOAD_STORAGE_PATH = Path(
        os.getenv("DECKSYNC_TEMP_DIR", BASE_DIR.parent / "temp")
    )

    @classmethod
    def load(cls) -> None:
        if cls._loaded:
            return

        logger.info("Loading config from: %s", cls.APPLICATION_YML_PATH)
        if cls.APPLICATION_YML_PATH.exists():
            with open(cls.APPLICATION_YML_PATH, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
                cls._log_level = data.get("log_level", "INFO")
                cls._llm_id = data.get("llm_id")
        else:
            logger.info("No application config file found, skipping")

        cls._loaded = True

    @classmethod
    def load_llm_entries(cls) -> List[dict]:
        if not cls.LLM_CONFIG_PATH.exists():
            raise FileNotFoundError(f"LLM config not found at {cls.LLM_CONFIG_PATH}")
        with open(cls.LLM_CONFIG_PATH, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or []

    @classmethod
    def _find_llm_id(cls, types: List[str], capability: Optional[str] = None) -> str:
        for entry in cls.load_llm_entries():
            if entry.get("type") not in types:
                continue
            if capability:
                capabilities = entry.get("capabilities", {})
                if isinstance(capabilities, dict):
                    if not capabilities.get(capability):
                        continue
                elif isinstance(capabilities, list):
                    if capability not in capabilities:
                        continue
                else:
                    continue
            return entry["id"]
        raise ValueError(
            f"No LLM found for types {types} with capability '{capability}'"
        )

    @classmethod
    def get_log_level(cls) -> str:
        cls.load()
        return cls._log_level

    @classmethod
    def get_vision_llm_id(cls) -> str:
        # An explicit llm_id in the application config wins over capability lookup
        cls.load()
        if cls._llm_id:
            return cls._llm_id
        return cls._find_llm_id(
            types=["azure_chat", "openai_chat"], capability="image_recognition"
        )

    @classmethod
    def ensure_dirs(cls) -> None:
        cls.UPLOAD_STORAGE_PATH.mkdir(parents=True, exist_ok=True)
