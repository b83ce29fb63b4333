# The module is to define the text_translate tool backed by Microsoft Azure Translator.
# Date: 2025-06-14
# Version: 0.1.0

from typing import Any, Dict, Optional, Type

import httpx
from pydantic import BaseModel, ConfigDict, Field

from toolstream.core.config import ProviderCredentials
from toolstream.core.errors import ToolError
from toolstream.utils.logger import console

from .base_tool import BaseTool

TRANSLATOR_URL = "https://api.cognitive.microsofttranslator.com/translate"


class TranslateInput(BaseModel):
    """Input model for the text_translate tool."""
    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(..., min_length=1, description="The text to translate.")
    to: str = Field(..., min_length=2, description="The language to translate to (e.g., 'fr' for French).")
    from_: Optional[str] = Field(default=None, alias="from", description="The source language (optional, auto-detected if not provided).")


class TranslateTool(BaseTool):
    """
    Translates text on the user's explicit request.
    """
    name: str = "text_translate"
    description: str = "Translates text from one language to another. Only use it when the user asks for a translation."
    args_schema: Type[BaseModel] = TranslateInput

    def __init__(self, credentials: ProviderCredentials, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(credentials, transport)
        if not credentials.azure_translator_key or not credentials.azure_translator_location:
            raise ValueError("AZURE_TRANSLATOR_KEY and AZURE_TRANSLATOR_LOCATION must be set in the .env file.")

    async def execute(self, text: str, to: str, from_: Optional[str] = None) -> Dict[str, Any]:
        console.info(f"Executing tool '{self.name}' ({from_ or 'auto'} -> {to})")
        params = {"api-version": "3.0", "to": to}
        if from_:
            params["from"] = from_
        headers = {
            "Ocp-Apim-Subscription-Key": self._credentials.azure_translator_key,
            "Ocp-Apim-Subscription-Region": self._credentials.azure_translator_location,
        }

        try:
            async with self._http_client() as client:
                response = await client.post(TRANSLATOR_URL, params=params, headers=headers, json=[{"text": text}])
                response.raise_for_status()
                data = response.json()
            entry = data[0]
            translated = entry["translations"][0]["text"]
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            raise ToolError(f"Translation to '{to}' failed: {e}") from e

        detected = (entry.get("detectedLanguage") or {}).get("language") or from_
        return {"translatedText": translated, "detectedLanguage": detected}
