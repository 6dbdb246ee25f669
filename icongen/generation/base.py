from abc import ABC, abstractmethod

from icongen.core.config import Settings, get_settings


class ImageGenerator(ABC):
    provider: str = "unknown"

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Generate one square image for prompt; return it base64-encoded."""
        ...


def get_image_generator(settings: Settings | None = None) -> ImageGenerator:
    settings = settings or get_settings()
    if settings.image_generator == "openai":
        from icongen.generation.openai_images import OpenAIImageGenerator
        return OpenAIImageGenerator(
            api_key=settings.openai_api_key,
            model=settings.openai_image_model,
            size=settings.image_size,
            timeout=settings.generation_timeout_seconds,
        )
    if settings.image_generator == "mock":
        from icongen.generation.fixture import FixtureImageGenerator
        return FixtureImageGenerator()
    raise ValueError(f"Unknown IMAGE_GENERATOR: {settings.image_generator!r}")
