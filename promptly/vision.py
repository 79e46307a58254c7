"""
Vision API client
Sends an image to an OpenAI-compatible chat-completions endpoint and
returns the model's description of it.
"""
import os
import asyncio
import base64
import time
import logging
import httpx

from .core import VISION_LATENCY
from .exceptions import VisionError

logger = logging.getLogger(__name__)

VISION_API_URL = os.getenv('VISION_API_URL', 'https://api.openai.com/v1/chat/completions')
VISION_API_KEY = os.getenv('VISION_API_KEY') or os.getenv('OPENAI_API_KEY')
VISION_MODEL = os.getenv('VISION_MODEL', 'gpt-4o')
VISION_TIMEOUT = float(os.getenv('VISION_TIMEOUT', '60'))
VISION_MAX_TOKENS = int(os.getenv('VISION_MAX_TOKENS', '1000'))
VISION_MAX_RASTER_SIDE = int(os.getenv('VISION_MAX_RASTER_SIDE', '2048'))

# what chat-completions accepts as image input; SVG is rendered to PNG first
VISION_MIME_TYPES = ('image/jpeg', 'image/png', 'image/gif')
DEFAULT_RASTER_SIDE = 1024

PROMPT_INSTRUCTION = (
    "Analyze this image and write a detailed prompt that could be used to "
    "recreate it with an AI image generator. Describe the subject, style, "
    "composition, colors, lighting and mood. Reply with the prompt only."
)


def rasterize_svg(content: bytes, width: int | None = None, height: int | None = None) -> bytes:
    """Render an SVG document to PNG, scaled down so neither side exceeds VISION_MAX_RASTER_SIDE"""
    # cairosvg needs the system cairo library, load it only when an SVG arrives
    import cairosvg

    if width and height:
        scale = min(1.0, VISION_MAX_RASTER_SIDE / max(width, height))
        size = (max(1, round(width * scale)), max(1, round(height * scale)))
    else:
        size = (DEFAULT_RASTER_SIDE, DEFAULT_RASTER_SIDE)
    return cairosvg.svg2png(bytestring=content, output_width=size[0], output_height=size[1])


async def to_vision_input(content: bytes, mime_type: str, width: int | None = None, height: int | None = None):
    """Return (bytes, mime_type) in a format the vision endpoint accepts"""
    if mime_type in VISION_MIME_TYPES:
        return content, mime_type
    png = await asyncio.to_thread(rasterize_svg, content, width, height)
    return png, 'image/png'


class VisionClient:
    """Interface: image bytes in, natural-language description out. Raises VisionError."""

    async def describe(self, image: bytes, mime_type: str) -> str:
        raise NotImplementedError


class OpenAIVisionClient(VisionClient):
    def __init__(self, api_url: str = VISION_API_URL, api_key: str | None = VISION_API_KEY,
                 model: str = VISION_MODEL, timeout: float = VISION_TIMEOUT,
                 transport: httpx.AsyncBaseTransport | None = None):
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.transport = transport

    def build_payload(self, image: bytes, mime_type: str) -> dict:
        data_url = f"data:{mime_type};base64,{base64.b64encode(image).decode('ascii')}"
        return {
            'model': self.model,
            'max_tokens': VISION_MAX_TOKENS,
            'messages': [{
                'role': 'user',
                'content': [
                    {'type': 'text', 'text': PROMPT_INSTRUCTION},
                    {'type': 'image_url', 'image_url': {'url': data_url}},
                ],
            }],
        }

    @staticmethod
    def parse_response(body) -> str:
        try:
            text = body['choices'][0]['message']['content']
        except (KeyError, IndexError, TypeError) as e:
            raise VisionError('Malformed response from vision API') from e
        if not isinstance(text, str) or not text.strip():
            raise VisionError('Vision API returned an empty description')
        return text.strip()

    async def describe(self, image: bytes, mime_type: str) -> str:
        if not self.api_key:
            raise VisionError('Vision API key is not configured')

        headers = {'Authorization': f'Bearer {self.api_key}', 'Content-Type': 'application/json'}
        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.api_url, headers=headers, json=self.build_payload(image, mime_type))
        except httpx.TimeoutException as e:
            logger.error({'msg': 'vision_timeout', 'timeout': self.timeout})
            raise VisionError('Vision API request timed out') from e
        except httpx.HTTPError as e:
            logger.error({'msg': 'vision_transport_error', 'error': str(e)})
            raise VisionError(f'Vision API request failed: {e}') from e
        finally:
            VISION_LATENCY.observe(time.perf_counter() - started)

        if response.status_code == 429:
            raise VisionError('Vision API rate limit exceeded', status_code=429)
        if response.status_code >= 400:
            logger.error({'msg': 'vision_bad_status', 'status': response.status_code, 'body': response.text[:500]})
            raise VisionError(f'Vision API returned HTTP {response.status_code}', status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise VisionError('Malformed response from vision API') from e
        return self.parse_response(body)


_vision_client: VisionClient | None = None


def get_vision_client() -> VisionClient:
    """FastAPI dependency; tests override it with a canned client"""
    global _vision_client
    if _vision_client is None:
        _vision_client = OpenAIVisionClient()
    return _vision_client
