"""
Sistema de logging estruturado em JSON
"""
import logging
import sys
from datetime import datetime
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Formatter customizado para logs em JSON"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)

        # Timestamp ISO 8601
        log_record['timestamp'] = datetime.utcnow().isoformat() + 'Z'
        log_record['level'] = record.levelname
        log_record['logger'] = record.name

        log_record['process'] = {
            'id': record.process,
            'name': record.processName
        }

        log_record['location'] = {
            'file': record.pathname,
            'line': record.lineno,
            'function': record.funcName
        }


def setup_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """
    Configura o sistema de logging

    Args:
        level: Nível de log (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Se True, usa formato JSON. Se False, usa formato texto.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    # Remover handlers existentes
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)

    if json_logs:
        formatter = CustomJsonFormatter(
            '%(timestamp)s %(level)s %(name)s %(message)s'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    # Bibliotecas ruidosas
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def log_request(
    logger: logging.Logger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    ip_address: str = None
):
    """
    Loga uma requisição HTTP

    Args:
        logger: Logger a ser usado
        method: Método HTTP (GET, POST, etc)
        path: Caminho da requisição
        status_code: Código de status HTTP
        duration_ms: Duração em milissegundos
        ip_address: IP do cliente (opcional)
    """
    logger.info(
        "HTTP Request",
        extra={
            'http': {
                'method': method,
                'path': path,
                'status_code': status_code,
                'duration_ms': duration_ms
            },
            'ip_address': ip_address
        }
    )


def log_api_call(
    logger: logging.Logger,
    provider: str,
    credential_index: int,
    pool_size: int,
    outcome: str,
    status_code: Optional[int] = None,
    duration_ms: Optional[float] = None,
    error: Optional[str] = None
):
    """
    Loga uma tentativa de chamada a API externa.

    A credencial é identificada apenas pela posição (1-based) no pool;
    o valor da chave nunca entra no log.

    Args:
        logger: Logger a ser usado
        provider: Serviço lógico (gemini-text, gemini-tts, etc)
        credential_index: Posição da credencial no pool, a partir de 1
        pool_size: Quantidade de credenciais no pool
        outcome: success | failure | exception | fatal
        status_code: Código de status HTTP (opcional)
        duration_ms: Duração em milissegundos (opcional)
        error: Mensagem de erro se houver (opcional)
    """
    if outcome == "success":
        level = logging.INFO
    elif outcome == "fatal":
        level = logging.ERROR
    else:
        level = logging.WARNING

    logger.log(
        level,
        f"API Call to {provider} (chave {credential_index}/{pool_size}): {outcome}",
        extra={
            'api_call': {
                'provider': provider,
                'credential_index': credential_index,
                'pool_size': pool_size,
                'outcome': outcome,
                'status_code': status_code,
                'duration_ms': duration_ms,
                'error': error[:300] if error else None
            }
        }
    )
