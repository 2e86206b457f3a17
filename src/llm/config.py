"""LLM provider configuration using LangChain abstractions."""

from langchain_core.language_models.chat_models import BaseChatModel

from config.settings import Settings, get_settings

SUPPORTED_PROVIDERS = ("groq", "anthropic", "google")


def has_llm_credentials(settings: Settings) -> bool:
    """Whether the API key for the configured provider is set."""
    provider = settings.finchat_llm_provider.lower()
    keys = {
        "groq": settings.groq_api_key,
        "anthropic": settings.anthropic_api_key,
        "google": settings.google_api_key,
    }
    return bool(keys.get(provider))


def get_llm(settings: Settings | None = None) -> BaseChatModel:
    """Create and return the configured chat model.

    Uses LangChain's BaseChatModel abstraction for LLM-agnostic access.
    Default: Groq-hosted Llama via langchain-groq. SDK retries are disabled;
    rate-limit responses are passed through to the caller instead.
    """
    settings = settings or get_settings()
    provider = settings.finchat_llm_provider.lower()

    if provider == "groq":
        from langchain_groq import ChatGroq

        return ChatGroq(
            model=settings.finchat_llm_model,
            temperature=settings.finchat_llm_temperature,
            max_tokens=settings.finchat_llm_max_tokens,
            api_key=settings.groq_api_key,
            max_retries=0,
        )
    elif provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        return ChatAnthropic(
            model=settings.finchat_llm_model,
            temperature=settings.finchat_llm_temperature,
            max_tokens=settings.finchat_llm_max_tokens,
            api_key=settings.anthropic_api_key,
            max_retries=0,
        )
    elif provider == "google":
        from langchain_google_genai import ChatGoogleGenerativeAI

        return ChatGoogleGenerativeAI(
            model=settings.finchat_llm_model,
            temperature=settings.finchat_llm_temperature,
            max_output_tokens=settings.finchat_llm_max_tokens,
            google_api_key=settings.google_api_key,
        )
    else:
        raise ValueError(
            f"Unsupported LLM provider: {provider}. "
            f"Supported: {', '.join(repr(p) for p in SUPPORTED_PROVIDERS)}"
        )
