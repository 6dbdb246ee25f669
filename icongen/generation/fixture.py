from icongen.generation.base import ImageGenerator

# 1x1 transparent PNG
FIXTURE_PNG_BASE64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


class FixtureImageGenerator(ImageGenerator):
    """Offline generator: the same fixture image for every prompt."""

    provider = "mock"

    def __init__(self, image_base64: str = FIXTURE_PNG_BASE64) -> None:
        self.image_base64 = image_base64

    async def generate(self, prompt: str) -> str:
        return self.image_base64
