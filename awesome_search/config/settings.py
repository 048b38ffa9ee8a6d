from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    awesome_db_path: str = "~/.awesome/awesome.db"
    metadata_path: str = "~/.awesome/db-metadata.json"
    webhook_secret: str | None = None

    allow_empty_snapshot: bool = False
    refresh_poll_seconds: float = 300.0

    search_default_limit: int = 20
    search_max_limit: int = 100
    list_default_limit: int = 50
    trending_limit: int = 10
    languages_limit: int = 50

    # Snippets
    snippet_tokens: int = 32
    highlight_open: str = "<mark>"
    highlight_close: str = "</mark>"
    snippet_ellipsis: str = "..."

    # BM25
    bm25_k1: float = 1.2
    bm25_b: float = 0.75
    weight_repository_name: float = 1.0
    weight_description: float = 1.0
    weight_content: float = 1.0
    weight_tags: float = 1.0
    weight_categories: float = 1.0

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def field_weights(self) -> dict[str, float]:
        return {
            "repository_name": self.weight_repository_name,
            "description": self.weight_description,
            "content": self.weight_content,
            "tags": self.weight_tags,
            "categories": self.weight_categories,
        }


settings = Settings()
