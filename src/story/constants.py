"""
Configuration constants for story and image generation.

Environment variables override the model and endpoint defaults at
provider construction time.
"""

# Story structure
MIN_SENTENCES_PER_PARAGRAPH = 4
MAX_SENTENCES_PER_PARAGRAPH = 5

# Text processing
IMAGE_PROMPT_PREVIEW_LENGTH = 50
VISUAL_SENTENCE_MAX_LENGTH = 100
MIN_PARAGRAPH_LENGTH = 100
IMAGE_QUALITY = "8k resolution"

# Fallback content
FALLBACK_PREFACE = "A story unfolds"
FALLBACK_PARAGRAPH = "The story continues..."
FALLBACK_IMAGE_PROMPT = "Additional scene from a {genre} story"

# Generation parameters
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2000
REGENERATE_MAX_TOKENS = 800
CONTINUE_MAX_TOKENS = 1200
DEFAULT_ADDITIONAL_PARAGRAPHS = 2

# Validation limits
MIN_CHARACTERS = 1
MAX_CHARACTERS = 6
MIN_PARAGRAPHS = 3
MAX_PARAGRAPHS = 10
MAX_CHARACTER_NAME_LENGTH = 50
MAX_SANITIZED_LENGTH = 1000
MAX_REQUEST_SIZE = 1024 * 1024  # 1MB

# Provider timeouts (seconds)
OLLAMA_TIMEOUT = 30
GEMINI_TIMEOUT = 20
GEMINI_IMAGE_TIMEOUT = 60
DEEPINFRA_TIMEOUT = 25
REPLICATE_TIMEOUT = 60

# Provider defaults
OLLAMA_BASE_URL = "http://localhost:11434"
OLLAMA_GENERATE_ENDPOINT = "/api/generate"
OLLAMA_TAGS_ENDPOINT = "/api/tags"
OLLAMA_TEXT_MODEL = "llama3.2"
OLLAMA_OPTIONS = {
    "top_p": 0.9,
    "repeat_penalty": 1.1,
}

DEEPINFRA_BASE_URL = "https://api.deepinfra.com/v1/inference"
DEEPINFRA_TEXT_MODEL = "meta-llama/Llama-3.1-70B-Instruct"
DEEPINFRA_STOP_SEQUENCES = ["</s>"]

GEMINI_TEXT_MODEL = "gemini-1.5-pro"
GEMINI_IMAGE_MODEL = "gemini-2.0-flash-preview-image-generation"
GEMINI_EXTRA_MODELS = ["gemini-1.5-flash", "gemini-2.0-flash-exp"]
GEMINI_HEALTH_PROMPT = "Hello"

REPLICATE_BASE_URL = "https://api.replicate.com/v1"
REPLICATE_IMAGE_MODEL = "black-forest-labs/flux-schnell"
REPLICATE_POLL_INTERVAL = 1.0
REPLICATE_PENDING_STATUSES = ("starting", "processing")
REPLICATE_INPUT = {
    "num_inference_steps": 4,
    "guidance_scale": 7.5,
    "width": 512,
    "height": 512,
}

# Mock image provider
MOCK_SVG_WIDTH = 400
MOCK_SVG_HEIGHT = 300
MOCK_PROMPT_TRUNCATE_LENGTH = 150
MOCK_PADDING = 20
MOCK_FONT_SIZE = 14
MOCK_LINE_HEIGHT = 1.4
MOCK_COLORS = [
    "#FF6B6B",  # red
    "#4ECDC4",  # teal
    "#45B7D1",  # blue
    "#96CEB4",  # green
    "#FFEAA7",  # yellow
    "#DDA0DD",  # purple
]

DEFAULT_IMAGE_FORMAT = "image/jpeg"

# Rate limiting
RATE_LIMIT_MAX_REQUESTS = 10
RATE_LIMIT_WINDOW_SECONDS = 60
RATE_LIMIT_CLEANUP_THRESHOLD = 1000  # tracked clients before expired entries are swept

# Provider health cache
PROVIDER_HEALTH_TTL_SECONDS = 30
