"""
Pool de credenciais intercambiáveis para um serviço upstream.

Cada dispatch percorre o pool sempre a partir do índice 0; o pool não
guarda memória de qual chave funcionou por último.
"""
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Tuple
import logging

from direito_edge.core.config import Settings, settings
from direito_edge.utils.cache import cached_function, credential_cache

logger = logging.getLogger(__name__)

# Serviços lógicos conhecidos
GEMINI_TEXT = "gemini-text"
GEMINI_IMAGE = "gemini-image"
GEMINI_TTS = "gemini-tts"

KNOWN_SERVICES = (GEMINI_TEXT, GEMINI_IMAGE, GEMINI_TTS)


class MissingCredentialsError(ValueError):
    """Nenhuma credencial configurada para o serviço."""

    def __init__(self, service: str):
        self.service = service
        super().__init__(f"Nenhuma chave configurada para o serviço '{service}'")


@dataclass(frozen=True)
class CredentialPool:
    """Sequência ordenada e imutável de credenciais de um serviço."""

    service: str
    credentials: Tuple[str, ...]

    def __post_init__(self):
        if not self.credentials:
            raise MissingCredentialsError(self.service)

    @classmethod
    def from_values(cls, service: str, values: Iterable[Optional[str]]) -> "CredentialPool":
        """Monta o pool descartando entradas vazias ou ausentes, preservando a ordem."""
        cleaned = tuple(v.strip() for v in values if v and v.strip())
        return cls(service=service, credentials=cleaned)

    @classmethod
    def from_settings(cls, service: str, config: Settings = None) -> "CredentialPool":
        config = config or settings
        if service not in KNOWN_SERVICES:
            raise ValueError(f"Serviço desconhecido: {service}")
        # TTS usa a chave DIREITO_PREMIUM_API_KEY como backup extra
        values = config.gemini_keys(include_backup=(service == GEMINI_TTS))
        pool = cls.from_values(service, values)
        logger.info(f"Pool '{service}' montado com {len(pool)} chave(s)")
        return pool

    def __len__(self) -> int:
        return len(self.credentials)

    def __iter__(self) -> Iterator[str]:
        return iter(self.credentials)

    def __repr__(self) -> str:
        # Nunca expor o valor das chaves
        return f"CredentialPool(service={self.service!r}, size={len(self.credentials)})"


@cached_function(credential_cache, key_func=lambda service: service)
def get_credential_pool(service: str) -> CredentialPool:
    """Pool do serviço a partir das settings globais, cacheado por processo."""
    return CredentialPool.from_settings(service)
