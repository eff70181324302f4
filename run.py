from __future__ import annotations

import argparse
import os
import time
from pathlib import Path

from dotenv import load_dotenv
from tqdm import tqdm

from matting.adapter import SegmentationAdapter
from matting.config import ALPHA_THRESHOLD, CHROMA_KEY_TOLERANCE, MODEL_VARIANTS
from matting.contracts import MattingParams
from matting.pipeline import process_image


def _iter_images(input_dir: Path):
    exts = {".jpg", ".jpeg", ".png", ".webp", ".bmp", ".tif", ".tiff"}
    for p in sorted(input_dir.rglob("*")):
        if p.is_file() and p.suffix.lower() in exts:
            yield p


def main() -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(description="Background removal with mask refinement and alpha matting.")
    parser.add_argument("--input", required=True, type=str, help="Input directory containing images.")
    parser.add_argument("--output", required=True, type=str, help="Output directory for PNGs.")
    parser.add_argument(
        "--model",
        action="append",
        default=None,
        help="Model spec ('hf:<repo>' or a TorchScript path). Repeat to set a fallback order. "
        "Defaults to $MATTING_MODEL or the built-in variant list.",
    )
    parser.add_argument("--bg-color", default=os.getenv("MATTING_BG_COLOR"), help="Solid background, e.g. '#00FF00'.")
    parser.add_argument("--remove-color", default=None, help="Chroma-key colour to cut, e.g. '#FFFFFF'.")
    parser.add_argument(
        "--remove-tolerance",
        type=int,
        default=CHROMA_KEY_TOLERANCE,
        help="Chroma-key tolerance, 0-50 (percent of max RGB distance).",
    )
    parser.add_argument(
        "--alpha-threshold",
        type=int,
        default=int(os.getenv("MATTING_ALPHA_THRESHOLD", ALPHA_THRESHOLD)),
        help="Mask value at or below which pixels are fully transparent (0-254).",
    )
    args = parser.parse_args()

    input_dir = Path(args.input)
    output_dir = Path(args.output)
    if not input_dir.exists():
        raise FileNotFoundError(f"Input dir not found: {input_dir}")

    params = MattingParams(
        alpha_threshold=args.alpha_threshold,
        background_color=args.bg_color or None,
        chroma_key_color=args.remove_color,
        chroma_key_tolerance=args.remove_tolerance,
    )

    variants = args.model
    if not variants:
        env_model = os.getenv("MATTING_MODEL")
        variants = [env_model] if env_model else list(MODEL_VARIANTS)
    adapter = SegmentationAdapter(variants=variants)
    adapter.initialize()
    print(f"Model: {adapter.model_id}")

    images = list(_iter_images(input_dir))
    if not images:
        print(f"No images found under {input_dir}")
        return 0

    total0 = time.perf_counter()
    for img_path in tqdm(images, desc="Processing", unit="img"):
        rel = img_path.relative_to(input_dir)
        out_path = (output_dir / rel).with_suffix(".png")
        timings = process_image(str(img_path), str(out_path), adapter, params)

        print(
            f"{img_path.name}: total={timings.total_s:.3f}s "
            f"(dec={timings.decode_s:.3f}s inf={timings.inference_s:.3f}s "
            f"mat={timings.matting_s:.3f}s enc={timings.encode_s:.3f}s)"
        )

    total1 = time.perf_counter()
    print(f"Done. {len(images)} images in {total1-total0:.2f}s")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
