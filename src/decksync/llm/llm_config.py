from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

from decksync.common.config import Config


class LLMConfig(BaseModel):
    """One entry of ``llm_config.decksync.yml``."""

    id: str
    type: Literal["openai_chat", "azure_chat"]
    model: Optional[str] = None
    api_key: str
    endpoint: Optional[str] = None
    api_version: Optional[str] = None
    azure_deployment: Optional[str] = None
    capabilities: Union[Dict[str, Any], List[str]] = {}
    timeout: float = 300.0

    model_config = ConfigDict(extra="ignore")

    @property
    def model_or_deployment(self) -> str:
        name = self.azure_deployment if self.type == "azure_chat" else self.model
        if not name:
            raise ValueError(f"LLM config '{self.id}' has no model/deployment name")
        return name


def load_llm_config(llm_id: Optional[str] = None) -> LLMConfig:
    """
    Load the LLM entry with the given id, or the configured vision model.
    """
    llm_id = llm_id or Config.get_vision_llm_id()
    for entry in Config.load_llm_entries():
        if entry.get("id") == llm_id:
            return LLMConfig(**entry)

    raise ValueError(f"LLM config with ID '{llm_id}' not found.")
