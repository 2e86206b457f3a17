"""Application configuration management."""

from pathlib import Path

from pydantic_settings import BaseSettings

DEFAULT_SOURCE_FILES = [
    "01.pdf",
    "02.pdf",
    "03.pdf",
    "04.pdf",
    "BFS_Share_Price.csv",
]


class Settings(BaseSettings):
    """FinChat application settings loaded from environment variables."""

    # Credentials
    google_genai_api_key: str = ""
    groq_api_key: str = ""
    anthropic_api_key: str = ""
    google_api_key: str = ""

    # Embedding
    finchat_embedding_model: str = "models/text-embedding-004"
    finchat_embedding_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    finchat_embedding_batch_size: int = 100
    finchat_embedding_batch_delay_ms: int = 200
    finchat_embedding_dimension: int = 768

    # LLM
    finchat_llm_provider: str = "groq"
    finchat_llm_model: str = "llama-3.3-70b-versatile"
    finchat_llm_temperature: float = 0.7
    finchat_llm_max_tokens: int = 1000

    # Vector index
    finchat_chroma_host: str = ""
    finchat_chroma_port: int = 8000
    finchat_chroma_token: str = ""
    finchat_chroma_path: str = "./data/chroma"
    finchat_collection_name: str = "pdf_chunks"
    finchat_upsert_batch_size: int = 50
    finchat_search_limit: int = 5

    # Metadata store
    finchat_database_url: str = "sqlite:///./data/finchat.db"

    # Ingestion
    finchat_chunk_size: int = 1000
    finchat_chunk_overlap: int = 200
    finchat_source_dir: str = "./public/hackathonproblemstatement"
    finchat_source_files: list[str] = DEFAULT_SOURCE_FILES
    finchat_ingest_on_startup: bool = True

    # Runtime
    finchat_request_timeout: float = 60.0
    finchat_expose_error_stack: bool = True

    @property
    def source_dir(self) -> Path:
        return Path(self.finchat_source_dir)

    @property
    def source_paths(self) -> list[Path]:
        return [self.source_dir / name for name in self.finchat_source_files]

    @property
    def embedding_batch_delay(self) -> float:
        return self.finchat_embedding_batch_delay_ms / 1000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
