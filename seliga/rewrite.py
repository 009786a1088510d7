"""
LLM rewriting through Groq's OpenAI-compatible chat completions API.

Two prompts are used: the feed importer asks for a short JSON answer
({"titulo", "conteudo"}) per RSS item, the portal scraper asks for a long
objective article (1 800–4 000 characters) and gates thin input.
"""

from __future__ import annotations
import json
import logging
import re
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"

IGNORED = "CONTEÚDO IGNORADO"
MIN_WORDS = 150
MIN_CHARS = 1800
MAX_CHARS = 4000

FEED_PROMPT = """Você é um jornalista profissional de Manaus/Amazonas.

TAREFA: Reescrever completamente a notícia abaixo de forma original, mantendo os fatos mas mudando totalmente a redação.

NOTÍCIA ORIGINAL:
Título: {title}
Conteúdo: {description}

INSTRUÇÕES:
1. Reescreva o conteúdo de forma TOTALMENTE ORIGINAL (não copie frases)
2. Use linguagem jornalística brasileira, clara e direta
3. Foque em Manaus/Amazonas quando relevante
4. Tamanho: entre 1500 e 3000 caracteres
5. Organize em parágrafos bem estruturados
6. Crie um título completamente novo e chamativo
7. IMPORTANTE: Escreva em português brasileiro correto

FORMATO DE RESPOSTA (JSON):
{{
  "titulo": "novo título aqui",
  "conteudo": "texto completo reescrito aqui (com múltiplos parágrafos separados por\\n\\n)"
}}"""

ARTICLE_PROMPT = """Contexto: Você é um redator de hard news. Escreva matéria 100% objetiva, factual e neutra.
Restrições duras:
- Nada de propaganda, autoelogio institucional, call-to-action ou menção a 'clique/assine/veja mais'.
- Não invente fatos. Se faltar dado, apenas omita.
- Tamanho final: ENTRE 1.800 e 4.000 caracteres (não palavras).
- Se o texto de entrada tiver MENOS de 150 palavras, responda EXATAMENTE: CONTEÚDO IGNORADO.

Título original: {title}
Fonte: {source}
Texto original (limpo):
{text}

Agora, produza a matéria reescrita em PT-BR."""


class RewriteError(Exception):
    """The model could not be reached or returned no usable answer."""


def count_words(text: str) -> int:
    return len(re.findall(r"\b\w+\b", text or ""))


def stretch(title: str, text: str) -> str:
    """Keyless fallback: title + source text, repeated once if short, capped at MAX_CHARS."""
    base = f"{title}\n\n{text}"
    if len(base) < MIN_CHARS:
        return (base + "\n\n" + text)[:MAX_CHARS]
    return base[:MAX_CHARS]


def fit_length(content: str, source_text: str) -> str:
    """Force the MIN_CHARS..MAX_CHARS window, padding with source text when short."""
    content = content.strip()
    if len(content) < MIN_CHARS:
        return (content + "\n\n" + source_text)[:MAX_CHARS]
    return content[:MAX_CHARS]


class GroqRewriter:
    def __init__(self, api_key: str, model: str = "llama-3.1-70b-specdec",
                 feed_model: str = "llama-3.1-8b-instant", timeout: int = 60):
        self.api_key = api_key
        self.model = model
        self.feed_model = feed_model
        self.timeout = timeout

    @classmethod
    def from_config(cls, config, api_key: str | None = None) -> "GroqRewriter":
        return cls(
            api_key if api_key is not None else config.groq_api_key,
            model=config.groq_model,
            feed_model=config.import_model,
            timeout=config.timeout * 2,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def complete(self, messages: list[dict], model: str, temperature: float,
                 max_tokens: int) -> str:
        """Run one chat completion and return the stripped answer text."""
        try:
            resp = httpx.post(
                GROQ_URL,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": model,
                    "messages": messages,
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                },
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise RewriteError(f"Error calling Groq API: {e}") from e

        if resp.status_code != 200:
            raise RewriteError(f"Groq API error: {resp.status_code} {resp.text[:300]}")

        try:
            content = resp.json()["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise RewriteError(f"Unexpected Groq response: {e}") from e
        return content.strip()

    # ── Feed items ────────────────────────────────────────────────────

    def rewrite_feed_item(self, title: str, description: str) -> Optional[tuple[str, str]]:
        """
        Rewrite an RSS item into (new_title, new_content).

        Returns None when the model gives an empty answer or an incomplete
        JSON object. A non-JSON answer is kept as content under the original
        title. Raises RewriteError when the API call fails.
        """
        content = self.complete(
            [{"role": "user", "content": FEED_PROMPT.format(title=title, description=description)}],
            model=self.feed_model,
            temperature=0.7,
            max_tokens=1024,
        )
        if not content:
            return None

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError:
            return title, content

        if not isinstance(parsed, dict):
            return title, content
        new_title = str(parsed.get("titulo") or "").strip()
        new_content = str(parsed.get("conteudo") or "").strip()
        if not new_title or not new_content:
            return None
        return new_title, new_content

    # ── Scraped articles ──────────────────────────────────────────────

    def rewrite_article(self, title: str, text: str, source: str, fallback: bool = True) -> str:
        """
        Long-form objective rewrite of a scraped article.

        Returns IGNORED for thin input. Without an API key, or when Groq
        fails, falls back to a stretched copy of the source text; with
        fallback=False a RewriteError is raised instead.
        """
        if count_words(text) < MIN_WORDS:
            return IGNORED

        if not self.enabled:
            if not fallback:
                raise RewriteError("Groq API key not configured")
            return stretch(title, text)

        try:
            out = self.complete(
                [
                    {"role": "system", "content": "Você é um redator de jornalismo objetivo."},
                    {"role": "user", "content": ARTICLE_PROMPT.format(
                        title=title, source=source, text=text)},
                ],
                model=self.model,
                temperature=0.3,
                max_tokens=1800,
            )
        except RewriteError as e:
            if not fallback:
                raise
            logger.error(f"Groq error: {e}")
            return stretch(title, text)

        return out or IGNORED
