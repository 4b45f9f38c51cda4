#!/usr/bin/env python3

"""
ishihara_cli.py

CLI for hiding a text message in an Ishihara-style color vision plate.

The text is rasterized into an opacity mask, a field of disks is packed
over the same canvas, each disk is labelled by the mask under its center,
and the plate is painted with red-green palette colors.

Typical usage:
    $ python3 ishihara_cli.py 42 --seed 7 --config config.yaml

Outputs per run (in ``output.outdir``):
  - <text>.png              (the plate)
  - <text>_layout.csv       (optional: x, y, radius, classification, color_rgb)
  - <text>_layout.svg       (optional: vector version of the plate)
and prints a JSON summary to stdout (optionally pretty).

The public entry point is :func:`main`.
"""

from __future__ import annotations
import argparse
import copy
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

import numpy as np
import yaml

from plate_core import (
    COVERAGE_RATIO, GAP, MAX_RADIUS, MAX_REJECTIONS, MIN_RADIUS,
    Classification, ConfigurationError, Palette, PlateError, assign_colors, classify, covered_area,
    ensure_bool, get_palette, opacity_grid, pack, paint,
)
from plate_io import (
    DEFAULT_FONT, DEFAULT_FONT_SCALE, DEFAULT_PADDING, DEFAULT_THICKNESS,
    output_stem, render_text_mask, write_image, write_layout_csv, write_layout_svg,
)

logger = logging.getLogger("ishihara")

# =========================
# Configuration
# =========================
DEFAULT_CONFIG: Dict[str, Any] = {
    "packing": {
        "max_radius": MAX_RADIUS,
        "min_radius": MIN_RADIUS,
        "gap": GAP,
        "coverage_ratio": COVERAGE_RATIO,
        "max_rejections": MAX_REJECTIONS,
        "keep_inside_canvas": False,
    },
    "text": {
        "font": DEFAULT_FONT,
        "font_scale": DEFAULT_FONT_SCALE,
        "thickness": DEFAULT_THICKNESS,
        "padding": DEFAULT_PADDING,
        "italic": False,
    },
    "palette": "red_green",
    "output": {
        "outdir": ".",
        "export_csv": False,
        "export_svg": False,
    },
    "seed": None,
}

LOGGERS = ("ishihara", "plate_core", "plate_io")


def _check_value(name: str, default, value):
    """Reject ``value`` unless it has the same kind as the built-in ``default``."""
    if isinstance(default, bool):
        ensure_bool(isinstance(value, bool), f"{name} must be true or false, got {value!r}.")
    elif isinstance(default, int):
        ensure_bool(isinstance(value, int) and not isinstance(value, bool),
                    f"{name} must be an integer, got {value!r}.")
    elif isinstance(default, float):
        ensure_bool(isinstance(value, (int, float)) and not isinstance(value, bool),
                    f"{name} must be a number, got {value!r}.")
    elif isinstance(default, str):
        ensure_bool(isinstance(value, str), f"{name} must be a string, got {value!r}.")


def merge_config(overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Overlay ``overrides`` on :data:`DEFAULT_CONFIG`.

    Unknown sections or keys and values of the wrong type raise
    :class:`ConfigurationError`, so a bad config fails before any work.
    """
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    for section, value in (overrides or {}).items():
        ensure_bool(section in cfg,
                    f"Unknown config section '{section}' (expected one of {sorted(cfg)}).")
        if isinstance(cfg[section], dict):
            ensure_bool(isinstance(value, dict), f"Config section '{section}' must be a mapping.")
            for key, v in value.items():
                ensure_bool(key in cfg[section],
                            f"Unknown key '{section}.{key}' (expected one of {sorted(cfg[section])}).")
                _check_value(f"{section}.{key}", cfg[section][key], v)
                cfg[section][key] = v
        elif section == "seed":
            ensure_bool(value is None or (isinstance(value, int) and not isinstance(value, bool)),
                        f"seed must be an integer, got {value!r}.")
            cfg[section] = value
        else:
            cfg[section] = value
    return cfg


def load_config(path: Optional[str]) -> Dict[str, Any]:
    if not path:
        return merge_config(None)
    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to read config: {e}") from e
    ensure_bool(raw is None or isinstance(raw, dict), f"Config root must be a mapping: {path}")
    return merge_config(raw)


def palette_from_config(value) -> Palette:
    """A palette is either a registered name or ``{inside: [...], outside: [...]}``."""
    if isinstance(value, str):
        return get_palette(value)
    ensure_bool(isinstance(value, dict) and "inside" in value and "outside" in value,
                "palette must be a name or a mapping with 'inside' and 'outside' colors.")
    try:
        return Palette.from_specs(str(value.get("name", "custom")), value["inside"], value["outside"])
    except ValueError as e:
        if isinstance(e, ConfigurationError):
            raise
        raise ConfigurationError(f"Bad palette color: {e}") from e


# =========================
# Logging
# =========================
def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    """
    Configure the package loggers.

    Args:
        level: Logging level (e.g. logging.DEBUG, logging.INFO)
        log_file: Optional path to save logs to a file.
    """
    # stdout carries the JSON summary
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='w', encoding='utf-8'))
    for h in handlers:
        h.setLevel(level)
        h.setFormatter(formatter)

    for name in LOGGERS:
        lg = logging.getLogger(name)
        lg.setLevel(level)
        # avoid duplicate handlers (and open log files) when main() runs twice in one process
        for old in list(lg.handlers):
            lg.removeHandler(old)
            old.close()
        for h in handlers:
            lg.addHandler(h)
        lg.propagate = False


def announce(step: str, inputs: Dict[str, Any]):
    """Log a pipeline step with its minimal inputs."""
    logger.info("[STEP] %s | inputs: %s", step, ", ".join(f"{k}={v}" for k, v in inputs.items()))


# =========================
# Main pipeline
# =========================
def make_plate(text: str,
               cfg: Optional[Dict[str, Any]] = None,
               seed: Optional[int] = None,
               outdir: Optional[str] = None) -> Dict[str, Any]:
    """
    Render ``text`` into a plate and write it (plus optional layouts) to disk.

    Args:
        text: Message to hide.
        cfg: Configuration (see :func:`load_config`); re-validated by
            :func:`merge_config`, defaults if None.
        seed: Random seed; overrides ``cfg['seed']``. A fresh seed is drawn
            and reported when neither is set.
        outdir: Output directory; overrides ``cfg['output']['outdir']``.

    Returns:
        Summary dict with output paths, image size, disk counts, achieved
        coverage and the seed used.

    Raises:
        ConfigurationError: Invalid text, mask or parameters.
        PackingUnreachable: The coverage goal could not be met.
        OSError: An output file could not be written.
    """
    cfg = merge_config(cfg)
    seed = seed if seed is not None else cfg.get("seed")
    if seed is None:
        seed = int(np.random.SeedSequence().entropy)
    ensure_bool(isinstance(seed, int) and seed >= 0, f"seed must be a non-negative integer, got {seed!r}.")
    outdir = outdir if outdir is not None else str(cfg["output"]["outdir"])
    packing = cfg["packing"]
    text_cfg = cfg["text"]

    palette = palette_from_config(cfg["palette"])
    rng = np.random.default_rng(seed)

    announce("RENDER_TEXT_MASK", {"text": text, "font": text_cfg["font"],
                                  "font_scale": text_cfg["font_scale"]})
    mask = opacity_grid(render_text_mask(
        text,
        font=str(text_cfg["font"]),
        font_scale=float(text_cfg["font_scale"]),
        thickness=int(text_cfg["thickness"]),
        padding=int(text_cfg["padding"]),
        italic=text_cfg["italic"],
    ))
    height, width = mask.shape

    announce("PACK_DISKS", {"size": (width, height), "seed": seed, **packing})
    disks = pack(
        width, height, rng,
        max_radius=float(packing["max_radius"]),
        min_radius=float(packing["min_radius"]),
        gap=float(packing["gap"]),
        coverage_ratio=float(packing["coverage_ratio"]),
        max_rejections=int(packing["max_rejections"]),
        keep_inside_canvas=packing["keep_inside_canvas"],
    )
    coverage = covered_area(disks) / float(width * height)
    logger.info("[OK] Packed %d disks (coverage=%.3f).", len(disks), coverage)

    announce("CLASSIFY", {"disks": len(disks)})
    labels = classify(disks, mask)
    inside = sum(1 for cls in labels.values() if cls is Classification.INSIDE)
    logger.info("[OK] %d inside, %d outside.", inside, len(labels) - inside)

    announce("COMPOSITE", {"palette": palette.name})
    colors = assign_colors(labels, rng, palette)
    plate = paint(width, height, colors)

    stem = output_stem(text)
    img_path = os.path.join(outdir, f"{stem}.png")
    announce("SAVE_PLATE", {"path": img_path})
    write_image(img_path, plate)
    logger.info("[OK] Plate saved: %s", img_path)

    result: Dict[str, Any] = {
        "image": img_path,
        "image_size": (int(width), int(height)),
        "disks": len(disks),
        "inside": inside,
        "outside": len(disks) - inside,
        "coverage": round(coverage, 4),
        "seed": seed,
    }

    if cfg["output"]["export_csv"]:
        csv_path = os.path.join(outdir, f"{stem}_layout.csv")
        write_layout_csv(csv_path, labels, colors)
        logger.info("[OK] CSV layout saved: %s", csv_path)
        result["csv_layout"] = csv_path

    if cfg["output"]["export_svg"]:
        svg_path = os.path.join(outdir, f"{stem}_layout.svg")
        write_layout_svg(svg_path, width, height, labels, colors)
        logger.info("[OK] SVG layout saved: %s", svg_path)
        result["svg_layout"] = svg_path

    return result


# =========================
# CLI
# =========================
def tuplify(o):
    """Convert tuples to lists for JSON printing."""
    if isinstance(o, tuple):
        return list(o)
    if isinstance(o, list):
        return [tuplify(v) for v in o]
    if isinstance(o, dict):
        return {k: tuplify(v) for k, v in o.items()}
    return o


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point for the plate generator command-line interface.

    Parses arguments, loads the optional YAML config, runs
    :func:`make_plate` and prints a JSON summary to stdout. Failures are
    reported as ``{"error": "..."}`` with a non-zero return code; a
    missing ``text`` argument exits via argparse before any work starts.

    Returns:
        Process exit code.
    """
    p = argparse.ArgumentParser(description="Hide a text message in an Ishihara-style dot plate.")
    p.add_argument("text", help="Text to hide in the plate.")
    p.add_argument("--config", help="Path to YAML config file (e.g., config.yaml).")
    p.add_argument("--seed", type=int, help="Random seed for a reproducible plate.")
    p.add_argument("--outdir", help="Directory for output files (overrides config).")
    p.add_argument("--pretty", action="store_true", help="Pretty-print JSON output.")
    p.add_argument("--verbose", action="store_true", help="Log every placed disk.")
    p.add_argument("--log-file", help="Also write logs to this file.")
    args = p.parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)

    try:
        cfg = load_config(args.config)
        result = make_plate(args.text, cfg, seed=args.seed, outdir=args.outdir)
    except (PlateError, OSError) as e:
        logger.error("%s", e)
        print(json.dumps({"error": str(e)}))
        return 1

    print(json.dumps(tuplify(result), indent=2 if args.pretty else None))
    return 0


if __name__ == "__main__":
    sys.exit(main())
