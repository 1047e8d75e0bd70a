"""
Prompts usados nas gerações em lote e avulsas.
"""

PROMPT_EXPLICACAO_ARTIGO = """Você é uma professora de Direito explicando um dispositivo legal para estudantes.

Explique o texto abaixo em linguagem clara, em português do Brasil, com:
1. O que o dispositivo diz, em uma frase
2. Explicação técnica
3. Um exemplo prático

TEXTO:
{texto}
"""

PROMPT_CAPA_EXPLICACAO = """Create a photorealistic cinematic cover image about the Brazilian legal topic "{titulo}".
Professional legal setting, warm lighting, no readable text, 16:9 composition."""


def build_explicacao_prompt(texto: str) -> str:
    return PROMPT_EXPLICACAO_ARTIGO.format(texto=texto.strip())


def build_capa_prompt(titulo: str) -> str:
    return PROMPT_CAPA_EXPLICACAO.format(titulo=titulo.strip())
