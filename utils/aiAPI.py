import logging
from typing import Optional

from google import genai
from google.genai import errors, types

from utils import config
from utils.errors import LLMError, ModelLimitError

logger = logging.getLogger(__name__)

_client: Optional[genai.Client] = None


def get_client() -> genai.Client:
    global _client
    if _client is None:
        _client = genai.Client(api_key=config.GEMINI_API_KEY)
    return _client


def _is_limit_error(e: errors.APIError) -> bool:
    return e.code == 429 or e.status == "RESOURCE_EXHAUSTED"


def generateResponse(
    system_prompt: str,
    user_text: str,
    model: Optional[str] = None,
    temperature: float = 0.2,
    max_tokens: int = 500,
) -> str:
    model = model or config.LLM_MODEL
    try:
        response = get_client().models.generate_content(
            model=model,
            contents=user_text,
            config=types.GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=temperature,
                max_output_tokens=max_tokens,
            ),
        )
    except errors.APIError as e:
        if _is_limit_error(e):
            raise ModelLimitError(f"Model {model} hit a token or rate limit: {e.message}") from e
        raise LLMError(f"Error occured: {str(e)}") from e
    except ValueError as e:
        # raised by the client when no API key is configured
        raise LLMError(f"Error occured: {str(e)}") from e
    return (response.text or "").strip()
