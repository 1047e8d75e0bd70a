"""
Cache em memória para objetos montados a partir da configuração
"""
from cachetools import TTLCache
from functools import wraps
from typing import Callable
import json
import hashlib


# Pools de credenciais (10 minutos)
credential_cache = TTLCache(maxsize=20, ttl=600)


def cache_key(*args, **kwargs) -> str:
    """
    Gera uma chave de cache a partir dos argumentos
    """
    key_data = json.dumps({"args": args, "kwargs": kwargs}, sort_keys=True, default=str)
    return hashlib.md5(key_data.encode()).hexdigest()


def cached_function(cache: TTLCache, key_func: Callable = None):
    """
    Decorator para cachear resultados de funções

    Args:
        cache: Cache a ser utilizado
        key_func: Função para gerar chave do cache (opcional)
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            if key_func:
                key = key_func(*args, **kwargs)
            else:
                key = cache_key(*args, **kwargs)

            if key in cache:
                return cache[key]

            # Exceções não são cacheadas: a próxima chamada tenta de novo
            result = func(*args, **kwargs)
            cache[key] = result
            return result

        wrapper.cache_clear = lambda: cache.clear()
        wrapper.cache = cache

        return wrapper
    return decorator
