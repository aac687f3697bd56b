"""Client for the primary dictionary lookup service."""

import logging
from typing import Protocol
from urllib.parse import quote

import httpx

from src.core.config import Settings, constants
from src.core.errors import LookupUnavailableError, classify_external_error


logger = logging.getLogger(__name__)


class DictionaryLookup(Protocol):
    """A dictionary that can say whether a word exists.

    ``contains`` returns False only for a definitive "not found" answer. Any
    other failure raises ``LookupUnavailableError`` so the caller can fall back.
    """

    source: str

    async def contains(self, word: str) -> bool: ...


class OxfordDictionaryClient:
    """Dictionary lookup against an Oxford-style ``/entries/<lang>/<word>`` API."""

    def __init__(
        self,
        *,
        base_url: str,
        app_id: str,
        app_key: str,
        source: str = "oxford",
        language: str = "en-us",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.source = source
        self.language = language
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url,
            timeout=constants.DICTIONARY_TIMEOUT_SECONDS,
            headers={"app_id": app_id, "app_key": app_key},
        )

    async def contains(self, word: str) -> bool:
        """Look a normalised word up in the dictionary."""
        path = f"/entries/{self.language}/{quote(word, safe='')}"
        try:
            response = await self._client.get(path)
        except httpx.HTTPError as e:
            category = classify_external_error(e)
            logger.warning(
                "dictionary_lookup_failed",
                extra={"word": word, "error": str(e), "category": category.value},
            )
            msg = f"Dictionary lookup failed for {word!r}: {e}"
            raise LookupUnavailableError(msg) from e

        if response.status_code == constants.HTTP_OK:
            return True
        if response.status_code == constants.HTTP_NOT_FOUND:
            return False

        logger.warning(
            "dictionary_lookup_unexpected_status",
            extra={"word": word, "status_code": response.status_code},
        )
        msg = f"Dictionary returned status {response.status_code} for {word!r}"
        raise LookupUnavailableError(msg)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()


def build_dictionary_client(config: Settings) -> OxfordDictionaryClient | None:
    """Create the dictionary client, or None when no API key is configured."""
    if not config.dictionary_app_key:
        logger.info("dictionary_lookup_disabled", extra={"reason": "no api key"})
        return None

    return OxfordDictionaryClient(
        base_url=config.dictionary_base_url,
        app_id=config.dictionary_app_id or "",
        app_key=config.dictionary_app_key,
        source=config.dictionary_source,
    )
