"""CLI entry points for pve-ctgen."""

from __future__ import annotations

import argparse
import dataclasses
from pathlib import Path
from typing import List, Optional, Sequence

from ctgen.config import GeneratorConfig, load_images, load_steps, parse_env
from ctgen.exceptions import GeneratorError
from ctgen.models import ImageSpec, StepSpec
from ctgen.pipeline import PipelineDriver
from ctgen.provision import build_context, render_command
from ctgen.status import ConsoleSink, ErrorLog, failed_names
from ctgen.utils import ensure_directory, log


def list_images(images: Sequence[ImageSpec]) -> None:
    """Print the configured images in processing order."""
    if not images:
        log("WARN", "No images found")
        return
    max_name = max(len(image.name) for image in images)
    for image in images:
        checksum = "checksum" if image.checksum_url else "no checksum"
        print(f"  {image.id:>5}  {image.name:<{max_name}}  (vendor={image.vendor or '-'}, {checksum})")


def show_config(cfg: GeneratorConfig) -> None:
    """Print the resolved configuration."""
    for field in dataclasses.fields(cfg):
        print(f"  {field.name}: {getattr(cfg, field.name)}")


def dry_run(cfg: GeneratorConfig, images: Sequence[ImageSpec], steps: Sequence[StepSpec]) -> None:
    """Show the commands each image would run without touching anything."""
    for image in images:
        log("INFO", f"=== {image.name} (id={image.id}) ===")
        print(f"  source:   {image.url}")
        print(f"  checksum: {image.checksum_url or '(none)'}")
        print(f"  cache:    {cfg.iso_dir / image.name}")
        context = build_context(image, cfg.staging_file)
        for idx, step in enumerate(steps, start=1):
            print(f"  [{idx}] {step.name}: {render_command(step.command, context)}")


def prepare_directories(cfg: GeneratorConfig) -> None:
    for path in (cfg.iso_dir, cfg.snippets_dir, cfg.log_dir):
        try:
            ensure_directory(path)
        except OSError as exc:
            raise GeneratorError(f"Error creating {path}: {exc}. Do you have proper permissions?")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Build Proxmox VE templates from cloud images")
    parser.add_argument("--images", type=Path, help="Image list (JSON or YAML)")
    parser.add_argument("--steps", type=Path, help="Provisioning step list (JSON or YAML)")
    parser.add_argument("--list-images", action="store_true", help="List configured images and exit")
    parser.add_argument("--show-config", action="store_true", help="Show resolved configuration and exit")
    parser.add_argument("--dry-run", action="store_true", help="Print rendered commands per image and exit")
    parser.add_argument("--no-colour", action="store_true", help="Disable ANSI colours in progress output")
    args = parser.parse_args(argv)

    try:
        cfg = parse_env()
        if args.images is not None:
            cfg = dataclasses.replace(cfg, images_path=args.images)
        if args.steps is not None:
            cfg = dataclasses.replace(cfg, steps_path=args.steps)
        if args.show_config:
            show_config(cfg)
            return 0
        images = load_images(cfg.images_path)
        if args.list_images:
            list_images(images)
            return 0
        steps = load_steps(cfg.steps_path)
        if args.dry_run:
            dry_run(cfg, images, steps)
            return 0
        prepare_directories(cfg)
    except GeneratorError as exc:
        log("ERROR", str(exc))
        return 1

    log("INFO", f"Processing {len(images)} image(s) with {len(steps)} provisioning step(s)")
    driver = PipelineDriver(cfg, steps, ConsoleSink(colour=not args.no_colour), error_log=ErrorLog(cfg.log_dir))
    try:
        results = driver.run(images)
    except KeyboardInterrupt:
        log("WARN", "Interrupted; partially provisioned resources are left in place")
        return 130
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        import traceback

        traceback.print_exc()
        return 1

    failed = failed_names(results)
    if failed:
        log("ERROR", f"{len(failed)} of {len(results)} image(s) failed; see {cfg.log_dir}/<image>.error.log")
        return 1
    return 0
