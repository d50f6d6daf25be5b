import sys
import json
import logging
import argparse
from dataclasses import replace
from pathlib import Path

from stampkit.core.state import APP_TITLE, OUTPUT_PATH, load_settings
from stampkit.core.objects import Product, design_from_dict, new_design
from stampkit.canvas.export import DesignExporter
from stampkit.canvas.units import size_px


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=f"{APP_TITLE}: render a stamp design to SVG and PNG")
    parser.add_argument("design", nargs="?", help="design JSON file (omit to render a blank design)")
    parser.add_argument("--size", default="60x40mm", help='product size, e.g. "60x40mm" or "40mm"')
    parser.add_argument("--shape", default=None, help="override the design shape")
    parser.add_argument("--out", default=None, help="output directory")
    args = parser.parse_args(argv)

    settings = load_settings()
    logger = logging.getLogger("stampkit")

    if args.design:
        src = Path(args.design)
        with open(src, "r", encoding="utf-8") as f:
            design = design_from_dict(json.load(f))
        out_dir = Path(args.out) if args.out else src.parent
        stem = src.stem
    else:
        product = Product(id="cli", size=args.size, shape=args.shape or "rectangle")
        design = new_design(product, settings)
        out_dir = Path(args.out) if args.out else OUTPUT_PATH
        stem = "stamp"

    if args.shape:
        design = replace(design, shape=replace(design.shape, kind=args.shape))

    width, height = size_px(args.size)
    out_dir.mkdir(parents=True, exist_ok=True)
    exporter = DesignExporter(background=settings.export_background)
    exporter.write_svg(out_dir / f"{stem}.svg", design, width, height)
    exporter.write_png(out_dir / f"{stem}.png", design, width, height)
    logger.info(f"Wrote {stem}.svg and {stem}.png to {out_dir}")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG, format="[%(asctime)s %(name)s] [%(levelname)s] %(message)s")
    logging.getLogger("PIL").setLevel(logging.WARNING)
    sys.exit(main())
