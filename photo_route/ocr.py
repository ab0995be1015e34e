from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

try:
    import pytesseract  # type: ignore
    from PIL import Image
except Exception:  # pragma: no cover - optional dependency
    pytesseract = None  # type: ignore
    Image = None  # type: ignore

from .types import BoundingBox, RecognizedCandidate


logger = logging.getLogger(__name__)

OCR_LANG = os.environ.get("PHOTO_ROUTE_OCR_LANG", "kor+eng")


def _group_lines(data: dict) -> list[dict]:
    """Merge Tesseract word boxes into lines, keyed by block/paragraph/line."""
    lines: dict[tuple[int, int, int], dict] = {}
    order: list[tuple[int, int, int]] = []
    n = len(data.get("text", []))
    for i in range(n):
        word = (data["text"][i] or "").strip()
        try:
            conf = float(data["conf"][i])
        except (TypeError, ValueError):
            conf = -1.0
        if not word or conf < 0:
            continue
        key = (int(data["block_num"][i]), int(data["par_num"][i]), int(data["line_num"][i]))
        left, top = int(data["left"][i]), int(data["top"][i])
        right, bottom = left + int(data["width"][i]), top + int(data["height"][i])
        line = lines.get(key)
        if line is None:
            lines[key] = {"words": [word], "confs": [conf], "box": [left, top, right, bottom]}
            order.append(key)
        else:
            line["words"].append(word)
            line["confs"].append(conf)
            box = line["box"]
            box[0], box[1] = min(box[0], left), min(box[1], top)
            box[2], box[3] = max(box[2], right), max(box[3], bottom)
    return [lines[k] for k in order]


def candidates_from_data(data: dict, width: int, height: int) -> list[RecognizedCandidate]:
    out: list[RecognizedCandidate] = []
    for line in _group_lines(data):
        text = " ".join(line["words"])
        confidence = sum(line["confs"]) / len(line["confs"]) / 100.0
        bbox: Optional[BoundingBox] = None
        if width > 0 and height > 0:
            left, top, right, bottom = line["box"]
            bbox = BoundingBox(
                x=min(1.0, max(0.0, left / width)),
                y=min(1.0, max(0.0, top / height)),
                w=min(1.0, max(0.0, (right - left) / width)),
                h=min(1.0, max(0.0, (bottom - top) / height)),
            )
        out.append(RecognizedCandidate.from_detection(text, confidence, bbox))
    return out


def detect_candidates(image_path: str | Path, lang: str = OCR_LANG) -> list[RecognizedCandidate]:
    """Run Tesseract on a photo and return one candidate per text line.

    Works only when Pillow + pytesseract are installed and the Tesseract
    binary (with the Korean language pack) is on PATH. Any failure yields an
    empty list so one unreadable photo never stops a batch.
    """
    if pytesseract is None or Image is None:
        logger.debug("pytesseract not available; skipping OCR")
        return []
    try:
        p = Path(image_path)
        if not p.exists():
            return []
        with Image.open(p) as im:
            rgb = im.convert("RGB")
            data = pytesseract.image_to_data(rgb, lang=lang, output_type=pytesseract.Output.DICT)
            return candidates_from_data(data, rgb.width, rgb.height)
    except Exception as e:
        logger.warning("OCR failed for %s: %s", image_path, e)
        return []
