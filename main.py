"""Live Sudoku overlay driven by a webcam feed or a still image."""
from __future__ import annotations

import argparse
import logging
from typing import Optional

import cv2
import imutils
import numpy as np

from config import PipelineConfig, load_config
from digit_recognizer import DigitRecognizer
from frame_processor import FrameProcessor, FrameResult, FrameStatus
from overlay import render_instructions

logger = logging.getLogger(__name__)

FRAME_WIDTH = 820
WINDOW_NAME = "Sudoku Overlay"

_STATUS_MESSAGES = {
    FrameStatus.SOLVED: ("Sudoku solved - hold steady", (0, 255, 0)),
    FrameStatus.CACHED: ("Solution cached - keep puzzle steady", (0, 255, 0)),
    FrameStatus.NO_BOARD: ("Searching for Sudoku grid...", (0, 165, 255)),
    FrameStatus.INVALID_CORNERS: ("Hold the full Sudoku in frame", (0, 165, 255)),
    FrameStatus.DEGENERATE_WARP: ("Hold the full Sudoku in frame", (0, 165, 255)),
    FrameStatus.UNREADABLE_CELLS: ("Need clearer view of the digits", (0, 0, 255)),
    FrameStatus.TOO_FEW_GIVENS: ("Need clearer view of the digits", (0, 0, 255)),
    FrameStatus.UNSOLVABLE: ("Grid detected but solver needs a cleaner scan", (0, 0, 255)),
    FrameStatus.MALFORMED_FRAME: ("Camera frame unreadable", (0, 0, 255)),
}


def present(frame: np.ndarray, result: FrameResult, config: PipelineConfig) -> np.ndarray:
    render_instructions(frame, result.instructions, config.font_scale, config.font_thickness)
    message, color = _STATUS_MESSAGES[result.status]
    cv2.putText(frame, message, (20, 40), cv2.FONT_HERSHEY_SIMPLEX, 1.0, color, 2, cv2.LINE_AA)
    return frame


def run(
    camera_index: int,
    image_path: Optional[str] = None,
    model_path: Optional[str] = None,
    config: Optional[PipelineConfig] = None,
) -> None:
    config = config or PipelineConfig()
    processor = FrameProcessor(DigitRecognizer(model_path), config)

    image_mode = image_path is not None
    raw_image: Optional[np.ndarray] = None
    cap: Optional[cv2.VideoCapture] = None
    if image_mode:
        raw_image = cv2.imread(image_path)  # type: ignore[arg-type]
        if raw_image is None:
            raise FileNotFoundError(f"Unable to read image at {image_path}")
    else:
        cap = cv2.VideoCapture(camera_index)
        if not cap.isOpened():
            raise RuntimeError(f"Unable to open camera index {camera_index}")

    cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)
    last_status: Optional[FrameStatus] = None

    while True:
        if image_mode:
            assert raw_image is not None
            frame = raw_image.copy()
        else:
            assert cap is not None
            grabbed, frame = cap.read()
            if not grabbed:
                break
        frame = imutils.resize(frame, width=FRAME_WIDTH)

        result = processor.process(frame)
        if result.status is not last_status:
            logger.info("Frame status: %s", result.status.value)
            last_status = result.status

        cv2.imshow(WINDOW_NAME, present(frame, result, config))
        key = cv2.waitKey(0 if image_mode else 1) & 0xFF
        if image_mode or key == ord("q"):
            break

    if cap is not None:
        cap.release()
    cv2.destroyAllWindows()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Realtime Sudoku solver overlay using OpenCV")
    parser.add_argument("--camera", type=int, default=0, help="Webcam index (default: 0)")
    parser.add_argument("--image", type=str, default=None, help="Path to a static Sudoku image (overrides webcam)")
    parser.add_argument("--model", type=str, default=None, help="Saved Keras digit model (default: font templates)")
    parser.add_argument("--config", type=str, default=None, help="JSON file overriding pipeline parameters")
    parser.add_argument("--log-level", type=str, default="INFO", help="Logging level (default: INFO)")
    return parser.parse_args()


def cli() -> None:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run(args.camera, args.image, args.model, load_config(args.config))


if __name__ == "__main__":
    cli()
