"""Factory for creating image analyzers based on model names."""

import os
from typing import Optional

from .base import ImageAnalyzer
from .config import Language


def create_analyzer(
    model: str,
    api_key: Optional[str] = None,
    language: Language = Language.FR,
    **kwargs
) -> ImageAnalyzer:
    """Create an image analyzer based on the model name.

    Args:
        model: Model identifier (e.g., "gemini-2.5-flash", "mock")
        api_key: API key for the service (if required)
        language: Output language for generated content and chat replies
        **kwargs: Additional arguments passed to the analyzer constructor

    Returns:
        ImageAnalyzer instance

    Raises:
        ValueError: If model is not recognized or required parameters are missing
        ImportError: If required dependencies are not installed
    """
    model_lower = model.lower()

    # Check for mock analyzer
    if model_lower.startswith("mock"):
        from .gemini_client import MockImageAnalyzer
        return MockImageAnalyzer(model=model, language=language)

    # Check for Gemini models
    if model_lower.startswith("gemini"):
        from .gemini_client import GeminiImageAnalyzer
        if not api_key:
            # Try to get from environment variable
            api_key = os.environ.get("GOOGLE_API_KEY")
            if not api_key:
                raise ValueError(
                    "API key required for Gemini models. "
                    "Provide --api-key or set GOOGLE_API_KEY environment variable."
                )
        return GeminiImageAnalyzer(api_key=api_key, model=model, language=language, **kwargs)

    raise ValueError(
        f"Unrecognized model: {model}. "
        f"Supported models: gemini-*, mock\n"
        f"Gemini examples: gemini-2.5-flash, gemini-2.5-pro, gemini-flash-latest"
    )
