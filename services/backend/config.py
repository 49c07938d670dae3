"""Backend settings."""
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    public_base_url: str = "http://localhost:8000"

    # On-device store (one JSON blob per key)
    storage_dir: str = "./data"
    reports_storage_key: str = "qservice_reports_prod"
    devices_storage_key: str = "qservice_devices"

    # Remote tabular store (Supabase Postgres). Empty -> remote sync disabled
    database_url: str = ""
    database_echo: bool = False
    database_create_schema: bool = True

    # Supabase Storage for photos/documents. Empty -> local media directory
    supabase_url: str = ""
    supabase_service_key: str = ""
    supabase_bucket: str = "images"
    media_dir: str = "./data/media"

    # AI extraction (OpenAI-compatible endpoint, OpenRouter by default)
    openai_api_key: str = ""
    openai_base_url: str = "https://openrouter.ai/api/v1"
    extraction_fallback_models: List[str] = [
        "google/gemini-1.5-flash",
        "google/gemini-1.5-pro",
        "google/gemini-1.5-flash-8b",
    ]
    extraction_model_keywords: List[str] = ["flash", "pro"]
    extraction_max_candidates: int = 6
    extraction_temperature: float = 0.1

    # Debounce windows (seconds)
    autosave_quiet_period: float = 1.0
    extraction_quiet_period: float = 1.5

    # Report documents
    report_output_dir: str = "./data/reports"
    company_name: str = "Q-Service AG"
    company_address: str = "Kriesbachstrasse 30, 8600 Dübendorf"
    company_web: str = "www.q-service.ch"
    company_phone: str = "+41 43 819 14 18"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    return Settings()
