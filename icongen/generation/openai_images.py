import openai
from openai import AsyncOpenAI

from icongen.core.exceptions import ProviderTerminalError, ProviderTransientError
from icongen.core.logging import get_logger
from icongen.generation.base import ImageGenerator

log = get_logger(__name__)


class OpenAIImageGenerator(ImageGenerator):
    """Images API, one image per call, returned inline as b64_json."""

    provider = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "dall-e-2",
        size: str = "512x512",
        timeout: float = 60.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self.size = size
        # Retries are the caller's decision: each retry may bill another image
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    async def generate(self, prompt: str) -> str:
        try:
            response = await self._client.images.generate(
                model=self.model,
                prompt=prompt,
                n=1,
                size=self.size,
                response_format="b64_json",
            )
        except openai.RateLimitError as e:
            if _error_code(e) == "insufficient_quota":
                raise ProviderTerminalError("Image generation quota exceeded", self.provider) from e
            raise ProviderTransientError("Image generation rate limited", self.provider) from e
        except openai.APIConnectionError as e:
            # includes APITimeoutError
            raise ProviderTransientError("Image generation service unreachable", self.provider) from e
        except openai.InternalServerError as e:
            raise ProviderTransientError("Image generation service error", self.provider) from e
        except openai.APIStatusError as e:
            log.warning("openai_image_rejected", status_code=e.status_code, code=_error_code(e))
            raise ProviderTerminalError(
                "Image generation request rejected",
                self.provider,
                details={"status_code": e.status_code},
            ) from e

        image_b64 = response.data[0].b64_json if response.data else None
        if not image_b64:
            raise ProviderTerminalError("Image generation returned no image data", self.provider)
        return image_b64


def _error_code(exc: openai.APIStatusError) -> str | None:
    code = getattr(exc, "code", None)
    if code:
        return code
    body = exc.body if isinstance(exc.body, dict) else {}
    err = body.get("error", body)
    return err.get("code") if isinstance(err, dict) else None
