"""
Image generation schemas.
"""

from typing import Optional
from pydantic import Field, model_validator

from .story import CamelModel


class ImageGenerateRequest(CamelModel):
    """
    Request for one paragraph illustration.

    Either prompt, or paragraphText (with genre) to derive a prompt from.
    """

    prompt: Optional[str] = Field(
        default=None,
        description="Image prompt, sent to the provider as-is",
        json_schema_extra={"examples": ["A castle above the clouds, magical, ethereal, fantasy art style, detailed, high quality, 8k resolution"]}
    )
    paragraph_text: Optional[str] = Field(default=None, alias="paragraphText")
    genre: Optional[str] = None
    paragraph_id: int = Field(..., alias="paragraphId", ge=1)

    @model_validator(mode="after")
    def require_prompt_source(self):
        if not (self.prompt and self.prompt.strip()) and not (
            self.paragraph_text and self.paragraph_text.strip()
        ):
            raise ValueError("Either prompt or paragraphText is required")
        return self


class ImageGenerateResponse(CamelModel):
    image_url: str = Field(..., alias="imageUrl")
    paragraph_id: int = Field(..., alias="paragraphId")
