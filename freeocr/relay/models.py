from pydantic import BaseModel, Field

from ..config.constants import DEFAULT_IMAGE_MIME_TYPE


class OcrRequest(BaseModel):
    """Validated inbound transcription request."""
    image_base64: str = Field(..., min_length=1, description="Base64-encoded image bytes")
    mime_type: str = Field(default=DEFAULT_IMAGE_MIME_TYPE, description="Image media type hint")

    def data_url_length(self) -> int:
        """Length of the data URL sent upstream (for logging)."""
        return len(self.image_base64) + len(self.mime_type) + len("data:;base64,")
