"""Application configuration."""
from typing import Dict, List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI (fallback classifier, disabled when no key is set)
    openai_api_key: Optional[str] = None
    fallback_model: str = "gpt-4o-mini"
    fallback_timeout_seconds: float = 10.0

    # Database
    database_url: str

    # Restaurant
    restaurant_name: str = "Restaurante"
    restaurant_phone: Optional[str] = None
    menu_file: Optional[str] = None
    preparation_times: Dict[str, int] = {"Empanadas": 15, "Pizzas": 25, "Bebidas": 2}
    default_preparation_minutes: int = 20

    # Conversation
    session_idle_timeout_minutes: int = 15
    menu_cache_ttl_seconds: int = 60
    off_topic_keywords: List[str] = [
        "politica", "elecciones", "gobierno", "deportes", "futbol", "boca",
        "river", "messi", "clima", "lluvia", "noticias", "coronavirus", "covid",
        "empleo", "novio", "novia", "salud", "doctor", "medicina",
    ]
    escalation_keywords: List[str] = [
        "humano", "gerente", "encargado", "hablar con una persona",
        "hablar con alguien", "reclamo",
    ]

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = Settings()
