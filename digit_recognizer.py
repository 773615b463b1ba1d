"""Digit classifier for cell patches: font templates, optionally backed by a Keras CNN."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import cv2
import numpy as np
import tensorflow as tf

from cell_segmenter import DigitClassifier

logger = logging.getLogger(__name__)

_TEMPLATE_FONT_CONFIGS = (
    (cv2.FONT_HERSHEY_SIMPLEX, 0.9, 2),
    (cv2.FONT_HERSHEY_SIMPLEX, 0.85, 1),
    (cv2.FONT_HERSHEY_DUPLEX, 0.85, 2),
    (cv2.FONT_HERSHEY_COMPLEX, 0.8, 2),
)
_TEMPLATE_THRESHOLD = 0.8
_TEMPLATE_MARGIN = 0.12
_CANVAS = 28


def normalize_patch(patch: np.ndarray) -> Optional[np.ndarray]:
    """Crop the ink and centre it in an MNIST-like 28x28 frame."""
    if patch.ndim == 3:
        patch = cv2.cvtColor(patch, cv2.COLOR_BGR2GRAY)
    coords = cv2.findNonZero(patch)
    if coords is None:
        return None
    x, y, w, h = cv2.boundingRect(coords)
    roi = patch[y : y + h, x : x + w]
    scale = 20.0 / max(h, w)
    resized = cv2.resize(
        roi,
        (max(1, int(w * scale)), max(1, int(h * scale))),
        interpolation=cv2.INTER_AREA,
    )
    canvas = np.zeros((_CANVAS, _CANVAS), dtype="uint8")
    y_offset = (_CANVAS - resized.shape[0]) // 2
    x_offset = (_CANVAS - resized.shape[1]) // 2
    canvas[y_offset : y_offset + resized.shape[0], x_offset : x_offset + resized.shape[1]] = resized
    return canvas


class DigitRecognizer(DigitClassifier):
    """Template matcher, optionally combined with a pre-trained Keras model.

    Training is not done here; ``model_path`` must point at a saved model.
    """

    def __init__(self, model_path: Optional[str] = None, min_confidence: float = 0.6) -> None:
        self.min_confidence = min_confidence
        self.model: Optional[tf.keras.Model] = None
        if model_path is not None:
            path = Path(model_path)
            if not path.exists():
                raise FileNotFoundError(f"No digit model at {path}")
            self.model = tf.keras.models.load_model(str(path))
            logger.info("Loaded digit model from %s", path)
        self.templates = self._build_templates()

    def _build_templates(self) -> Dict[int, List[np.ndarray]]:
        templates: Dict[int, List[np.ndarray]] = {}
        for digit in range(1, 10):
            variants: List[np.ndarray] = []
            text = str(digit)
            for font, scale, thickness in _TEMPLATE_FONT_CONFIGS:
                canvas = np.zeros((_CANVAS, _CANVAS), dtype="uint8")
                cv2.putText(canvas, text, (0, _CANVAS - 4), font, scale, 255, thickness, cv2.LINE_AA)
                normalized = normalize_patch(canvas)
                if normalized is not None:
                    variants.append(normalized.astype("float32") / 255.0)
            templates[digit] = variants
        return templates

    @staticmethod
    def _cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
        a_vec = a.flatten()
        b_vec = b.flatten()
        denom = (np.linalg.norm(a_vec) * np.linalg.norm(b_vec)) + 1e-8
        return float(np.dot(a_vec, b_vec) / denom)

    def _template_predict(self, digit_img: np.ndarray) -> Tuple[int, float]:
        normalized = digit_img.astype("float32") / 255.0
        best_digit = 0
        best_score = 0.0
        for digit, variants in self.templates.items():
            for template in variants:
                score = self._cosine_similarity(normalized, template)
                if score > best_score:
                    best_digit = digit
                    best_score = score
        return best_digit, best_score

    def _model_predict(self, digit_img: np.ndarray) -> Tuple[int, float]:
        assert self.model is not None
        batch = (digit_img.astype("float32") / 255.0)[np.newaxis, ..., np.newaxis]
        probs = self.model.predict(batch, verbose=0)[0]
        digit = int(np.argmax(probs))
        return digit, float(probs[digit])

    def predict(self, patch: np.ndarray) -> Tuple[Optional[int], float]:
        """Return (digit or None, confidence); digit 0 means the patch has no ink."""
        digit_img = normalize_patch(patch)
        if digit_img is None:
            return 0, 1.0

        template_digit, template_score = self._template_predict(digit_img)
        template_ok = template_score >= _TEMPLATE_THRESHOLD
        if self.model is None:
            return (template_digit, template_score) if template_ok else (None, template_score)

        digit, confidence = self._model_predict(digit_img)
        if digit == 0 or confidence < self.min_confidence:
            if template_ok:
                return template_digit, template_score
            return None, confidence
        if template_ok and (template_score - confidence) >= _TEMPLATE_MARGIN:
            return template_digit, template_score
        return digit, confidence

    def classify(self, patch: np.ndarray) -> Optional[int]:
        digit, _ = self.predict(patch)
        return digit


def _cli() -> None:
    parser = argparse.ArgumentParser(description="Inspect cell patches with the digit recognizer")
    parser.add_argument("--samples", nargs="+", help="Paths to cell images to evaluate")
    parser.add_argument("--model", type=str, default=None, help="Optional saved Keras model")
    args = parser.parse_args()

    if not args.samples:
        parser.error("Provide at least one image path via --samples")

    recognizer = DigitRecognizer(args.model)
    for sample_path in args.samples:
        patch = cv2.imread(sample_path, cv2.IMREAD_GRAYSCALE)
        if patch is None:
            print(f"Unable to load sample at {sample_path}")
            continue
        digit, confidence = recognizer.predict(patch)
        label = "?" if digit is None else str(digit)
        print(f"{sample_path}: predicted {label} (confidence {confidence:.2f})")


if __name__ == "__main__":
    _cli()
