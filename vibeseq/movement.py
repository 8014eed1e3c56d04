"""
Movement Controller for vibeseq

Turns a free-form description ("slow and gentle", "fast erratic") into a
fixed-step intensity sequence. The text is sent to a local language model
(Ollama /api/generate by default); the reply is reduced to four movement
parameters by keyword rules, and the parameters are rendered at 100 ms steps.

Any failure to obtain a reply gives a constant 0.5 sequence of the same
length. Errors never reach the caller.

Usage:
    controller = MovementController(api_url="http://localhost:11434/api/generate")
    intensities = controller.generate_movement_sequence("gentle waves", 2000)
    levels = intensities_to_levels(intensities, row_count=5)
"""

import json
import logging
import math
import urllib.request
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, List, Optional

import numpy as np

logger = logging.getLogger(__name__)


DEFAULT_API_URL = "http://localhost:11434/api/generate"
DEFAULT_MODEL = "llama2"
MOVEMENT_STEP_MS = 100
FALLBACK_INTENSITY = 0.5


@dataclass
class MovementParameters:
    """Parameter bundle extracted from text; each roughly in [0, 1.5]"""
    intensity: float = 0.5
    frequency: float = 1.0
    smoothness: float = 0.8
    variation: float = 0.3

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def parse_movement_output(text: str) -> MovementParameters:
    """Reduce model output to movement parameters by keyword rules"""
    params = MovementParameters()
    if 'gentle' in text:
        params.intensity *= 0.5
    if 'intense' in text:
        params.intensity *= 1.5
    if 'slow' in text:
        params.frequency *= 0.5
    if 'fast' in text:
        params.frequency *= 1.5
    if 'smooth' in text:
        params.smoothness = 1.0
    if 'erratic' in text:
        params.variation = 0.8
    return params


def step_count_for(duration_ms: float, step_ms: int = MOVEMENT_STEP_MS) -> int:
    """Number of whole steps that fit in duration_ms"""
    return max(0, int(math.floor(duration_ms / step_ms)))


def convert_to_intensities(params: MovementParameters, duration_ms: float,
                           step_ms: int = MOVEMENT_STEP_MS) -> List[float]:
    """
    Render parameters as intensities at fixed steps

    value(t) = clamp(intensity + sin(2*pi*t*frequency) * variation
                     + sin(2*pi*t) * (1 - smoothness), 0, 1)
    with t = i / steps.
    """
    steps = step_count_for(duration_ms, step_ms)
    if steps == 0:
        return []
    t = np.arange(steps) / steps
    values = (params.intensity
              + np.sin(2.0 * np.pi * t * params.frequency) * params.variation
              + np.sin(2.0 * np.pi * t) * (1.0 - params.smoothness))
    return np.clip(values, 0.0, 1.0).tolist()


def fallback_pattern(duration_ms: float, step_ms: int = MOVEMENT_STEP_MS) -> List[float]:
    """Constant mid-level sequence used when no parameters are available"""
    return [FALLBACK_INTENSITY] * step_count_for(duration_ms, step_ms)


def intensities_to_levels(intensities: List[float], row_count: int) -> List[int]:
    """Quantize 0-1 intensities onto a grid of row_count levels"""
    values = np.clip(np.asarray(intensities, dtype=np.float64), 0.0, 1.0)
    return np.rint(values * (row_count - 1)).astype(int).tolist()


class MovementController:
    """
    Text-to-movement generator backed by a local language model.

    A text_source callable (prompt -> text) may be injected in place of the
    HTTP call.
    """

    def __init__(self, api_url: str = DEFAULT_API_URL, model: str = DEFAULT_MODEL,
                 timeout: float = 30.0, text_source: Optional[Callable[[str], str]] = None):
        self.api_url = api_url
        self.model = model
        self.timeout = timeout
        self._text_source = text_source

    def generate_movement_prompt(self, description: str, current_state: Dict[str, Any]) -> str:
        return (f'Generate a natural movement pattern for: "{description}".\n'
                f'Current state: {json.dumps(current_state)}.\n'
                f'Movement should be smooth and human-like.')

    def _request_text(self, prompt: str) -> str:
        """POST the prompt and return the generated text"""
        if self._text_source is not None:
            return self._text_source(prompt)

        data = {"model": self.model, "prompt": prompt, "stream": False}
        req = urllib.request.Request(
            self.api_url,
            data=json.dumps(data).encode('utf-8'),
            headers={"Content-Type": "application/json"},
            method="POST"
        )
        with urllib.request.urlopen(req, timeout=self.timeout) as response:
            result = json.loads(response.read().decode('utf-8'))
        return result.get("response") or result.get("generated_text") or ""

    def request_parameters(self, description: str,
                           current_state: Optional[Dict[str, Any]] = None) -> MovementParameters:
        """Ask the model about description and parse its reply; may raise"""
        prompt = self.generate_movement_prompt(description, current_state or {})
        text = self._request_text(prompt)
        return parse_movement_output(text)

    def generate_movement_sequence(self, description: str, duration_ms: float,
                                   current_state: Optional[Dict[str, Any]] = None) -> List[float]:
        """Intensities at 100 ms steps over duration_ms; never raises"""
        try:
            params = self.request_parameters(description, current_state)
        except Exception as e:
            logger.error(f"Error generating movement: {e}")
            return fallback_pattern(duration_ms)
        logger.debug("Movement parameters for %r: %s", description, params)
        return convert_to_intensities(params, duration_ms)

    def generate_levels(self, description: str, row_count: int, column_count: int) -> List[int]:
        """Movement for column_count steps quantized onto a level grid"""
        intensities = self.generate_movement_sequence(description, column_count * MOVEMENT_STEP_MS)
        return intensities_to_levels(intensities, row_count)
