"""
LLM client for Ollama integration
"""

import time
import logging
import requests
from typing import Dict, Any, List, Optional

logger = logging.getLogger(__name__)

class LLMClient:
    """
    Client for the Ollama text generation API.

    HTTP failures are raised as ``requests`` exceptions so that the caller's
    retry policy can classify them.
    """

    def __init__(self, llm_config: Dict[str, Any]):
        self.config = llm_config
        self.base_url = llm_config['base_url'].rstrip('/')
        self.default_model = llm_config['default_model']
        self.timeout = llm_config.get('timeout', 60)

    def test_connection(self) -> bool:
        """Test connection to Ollama service"""
        try:
            response = requests.get(f"{self.base_url}/api/tags", timeout=5)
        except requests.RequestException as e:
            logger.error(f"Ollama connection test failed: {e}")
            return False

        if response.status_code != 200:
            logger.error(f"Ollama service returned HTTP {response.status_code}")
            return False

        models = [model['name'] for model in response.json().get('models', [])]
        logger.info(f"✓ Ollama connected. Available models: {len(models)}")
        if self.default_model not in models:
            logger.warning(f"Missing model: {self.default_model}")
        return True

    def generate(self, prompt: str, model: Optional[str] = None) -> str:
        """Call Ollama for text generation"""
        model = model or self.default_model
        start_time = time.time()

        payload = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": 0.3,
                "top_p": 0.9
            }
        }

        logger.info(f"🔄 LLM call to {model} starting...")
        try:
            response = requests.post(
                f"{self.base_url}/api/generate",
                json=payload,
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as e:
            call_time = time.time() - start_time
            logger.error(f"❌ LLM call to {model} failed after {call_time:.2f}s: {e}")
            raise

        response_text = response.json().get('response', '')
        call_time = time.time() - start_time
        logger.info(f"✅ LLM call to {model} completed: {call_time:.2f}s ({len(response_text)} chars)")
        return response_text

    def get_available_models(self) -> List[str]:
        """Get list of available models"""
        try:
            response = requests.get(f"{self.base_url}/api/tags", timeout=5)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to get available models: {e}")
            return []
        return [model['name'] for model in response.json().get('models', [])]
