from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # Chaves Gemini em ordem de prioridade (fallback)
    GEMINI_KEY_1: Optional[str] = None
    GEMINI_KEY_2: Optional[str] = None
    GEMINI_KEY_3: Optional[str] = None
    DIREITO_PREMIUM_API_KEY: Optional[str] = None  # backup extra, usado apenas no TTS
    TINYPNG_API_KEY: Optional[str] = None

    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_TEXT_MODEL: str = "gemini-2.0-flash"
    GEMINI_IMAGE_MODEL: str = "gemini-2.0-flash-exp-image-generation"
    GEMINI_TTS_MODEL: str = "gemini-2.5-flash-preview-tts"
    GEMINI_TTS_VOICE: str = "Kore"

    HTTP_TIMEOUT_SECONDS: float = 60.0
    TTS_TIMEOUT_SECONDS: float = 180.0  # 3 minutos por segmento de audio

    # Delays entre itens de lote (ms)
    BATCH_DELAY_DEFAULT_MS: int = 3000
    BATCH_DELAY_NARRACAO_MS: int = 5000

    RETRY_POLICY: str = "all"  # "all", "quota" ou "transient"

    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True

    def gemini_keys(self, include_backup: bool = False) -> List[Optional[str]]:
        """Chaves Gemini na ordem de tentativa (podem conter vazias)."""
        keys = [self.GEMINI_KEY_1, self.GEMINI_KEY_2, self.GEMINI_KEY_3]
        if include_backup:
            keys.append(self.DIREITO_PREMIUM_API_KEY)
        return keys


settings = Settings()
