from typing import Tuple, Union

from openai import AsyncAzureOpenAI, AsyncOpenAI

from decksync.llm.llm_config import LLMConfig


def get_openai_client(
    config: LLMConfig,
) -> Tuple[Union[AsyncOpenAI, AsyncAzureOpenAI], str]:
    """
    Create an async OpenAI or Azure OpenAI client plus the model/deployment name.

    Retries are disabled; a failed call is surfaced to the caller as-is.
    """
    if config.type == "azure_chat":
        return (
            AsyncAzureOpenAI(
                azure_endpoint=config.endpoint,
                azure_deployment=config.azure_deployment,
                api_key=config.api_key,
                api_version=config.api_version,
                timeout=config.timeout,
                max_retries=0,
            ),
            config.model_or_deployment,
        )

    if config.type == "openai_chat":
        return (
            AsyncOpenAI(
                api_key=config.api_key,
                base_url=config.endpoint,
                timeout=config.timeout,
                max_retries=0,
            ),
            config.model_or_deployment,
        )

    raise ValueError(f"Unsupported OpenAI LLM config type: {config.type}")
