"""
Endpoints de saude do sistema.
"""
from fastapi import APIRouter

from direito_edge.services.credential_pool import (
    KNOWN_SERVICES,
    MissingCredentialsError,
    get_credential_pool,
)

router = APIRouter(prefix="/api/system", tags=["System Health"])


@router.get("/health")
def health_check():
    """Health check basico do sistema."""
    return {"status": "healthy"}


@router.get("/credentials")
def credential_status():
    """
    Quantidade de chaves configuradas por serviço.

    Apenas contagens; os valores das chaves nunca são expostos.
    """
    services = {}
    for service in KNOWN_SERVICES:
        try:
            services[service] = len(get_credential_pool(service))
        except MissingCredentialsError:
            services[service] = 0
    return {"services": services}
