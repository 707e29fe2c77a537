"""
ShowReel CLI.

  showreel serve                      Run the HTTP API
  showreel create IMAGE -t TYPE -n NAME   Upload a product photo and follow the pipeline
  showreel status ID                  Print one project
  showreel watch ID                   Follow a project until it finishes
  showreel list                       List projects
  showreel clear                      Delete all projects
  showreel mode [real|simulation|env] Show or switch the API mode
"""

import os
import sys
import asyncio
import logging
import argparse
import mimetypes
from pathlib import Path
from typing import Callable, Optional

from dotenv import load_dotenv

WATCH_INTERVAL = 1.0  # seconds
BAR_WIDTH = 30


def render_progress(project) -> str:
    from .pipeline.models import status_display

    label, pct = status_display(project.status)
    filled = int(BAR_WIDTH * pct / 100)
    bar = "#" * filled + "-" * (BAR_WIDTH - filled)
    line = f"[{bar}] {pct:3d}% {label}"
    if project.error:
        line += f" - {project.error}"
    return line


def format_project(project) -> str:
    lines = [
        f"Project {project.id}",
        f"  Product:     {project.product_name} ({project.product_type})",
        f"  Status:      {project.status.value}",
        f"  Progress:    {render_progress(project)}",
        f"  Created:     {project.created_at}",
        f"  Original:    {project.original_image_url}",
    ]
    for label, value in (
        ("Transparent", project.transparent_image_url),
        ("Mannequin", project.mannequin_image_url),
        ("Composite", project.composite_image_url),
        ("Video", project.video_url),
    ):
        if value:
            lines.append(f"  {label + ':':<12} {value}")
    if project.script:
        lines.append(f"  Headline:    {project.script.headline}")
        for bullet in project.script.bullets:
            lines.append(f"    • {bullet}")
        lines.append(f"  CTA:         {project.script.cta}")
    return "\n".join(lines)


async def watch_project(
    project_id: str,
    interval: float = WATCH_INTERVAL,
    out: Callable[[str], None] = print,
) -> Optional[object]:
    """
    Re-read the project on a fixed timer and print progress whenever it
    changes. Stops on complete, error or when the project vanishes.
    """
    from .pipeline.models import TERMINAL_STATUSES
    from .pipeline.store import get_showreel_store

    store = get_showreel_store()
    last_line = None
    while True:
        project = store.get_project(project_id)
        if project is None:
            out(f"Project {project_id} not found")
            return None

        line = render_progress(project)
        if line != last_line:
            out(line)
            last_line = line

        if project.status in TERMINAL_STATUSES:
            return project
        await asyncio.sleep(interval)


# ── Commands ─────────────────────────────────────────────────────────────────

def cmd_serve(args) -> int:
    from .main import serve

    serve(host=args.host, port=args.port, reload=args.reload)
    return 0


async def _create_and_follow(args) -> int:
    from .pipeline import project_service
    from .pipeline.models import ProjectCreationParams, ProjectStatus

    path = Path(args.image)
    data = path.read_bytes()
    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"

    project = await project_service.create_project(
        ProjectCreationParams(
            product_type=args.product_type,
            product_name=args.product_name,
            product_description=args.description,
        ),
        data,
        path.name,
        content_type,
        schedule=lambda *_: None,
    )
    print(f"Created project {project.id}")

    real = None
    if args.real:
        real = True
    elif args.simulate:
        real = False

    run = project_service.get_pipeline().run(project.id, real=real)
    if args.no_watch:
        final = await run
    else:
        final, _ = await asyncio.gather(run, watch_project(project.id, args.interval))

    if final is None:
        return 1
    print(format_project(final))
    return 0 if final.status == ProjectStatus.COMPLETE else 1


def cmd_create(args) -> int:
    try:
        return asyncio.run(_create_and_follow(args))
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


def cmd_status(args) -> int:
    from .pipeline import project_service

    project = project_service.get_project(args.project_id)
    if project is None:
        print(f"Project {args.project_id} not found", file=sys.stderr)
        return 1
    print(format_project(project))
    return 0


def cmd_watch(args) -> int:
    from .pipeline.models import ProjectStatus

    project = asyncio.run(watch_project(args.project_id, args.interval))
    if project is None:
        return 1
    return 0 if project.status == ProjectStatus.COMPLETE else 1


def cmd_list(args) -> int:
    from .pipeline import project_service

    projects = project_service.get_projects()
    if not projects:
        print("No projects yet")
        return 0
    for project in projects:
        print(f"{project.id}  {project.status.value:<22} {project.product_type:<11} {project.product_name}")
    return 0


def cmd_clear(args) -> int:
    from .pipeline import project_service

    if not args.yes:
        answer = input("Delete all projects? [y/N] ").strip().lower()
        if answer != "y":
            print("Aborted")
            return 1
    project_service.clear_projects()
    print("All projects deleted")
    return 0


def cmd_mode(args) -> int:
    from .pipeline import api_mode

    if args.mode == "real":
        api_mode.set_api_mode(True)
    elif args.mode == "simulation":
        api_mode.set_api_mode(False)
    elif args.mode == "env":
        api_mode.clear_api_mode_override()

    mode = api_mode.describe_api_mode()
    name = "real APIs" if mode["use_real_apis"] else "simulation"
    print(f"API mode: {name} (source: {mode['source']}, env: {mode['env_value']})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="showreel", description="Product photo to marketing video")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default="0.0.0.0")
    p.add_argument("--port", type=int, default=None)
    p.add_argument("--reload", action="store_true")
    p.set_defaults(func=cmd_serve)

    p = sub.add_parser("create", help="Upload a product photo and run the pipeline")
    p.add_argument("image", help="JPEG or PNG product photo (max 5MB)")
    p.add_argument("-t", "--type", dest="product_type", required=True,
                   help="t-shirt, hoodie, tote bag, mug, phone case or poster")
    p.add_argument("-n", "--name", dest="product_name", required=True)
    p.add_argument("-d", "--description", default=None)
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--real", action="store_true", help="Force real API calls")
    mode.add_argument("--simulate", action="store_true", help="Force simulation")
    p.add_argument("--no-watch", action="store_true", help="Do not print progress")
    p.add_argument("--interval", type=float, default=WATCH_INTERVAL)
    p.set_defaults(func=cmd_create)

    p = sub.add_parser("status", help="Show one project")
    p.add_argument("project_id")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("watch", help="Follow a project until it finishes")
    p.add_argument("project_id")
    p.add_argument("--interval", type=float, default=WATCH_INTERVAL)
    p.set_defaults(func=cmd_watch)

    p = sub.add_parser("list", help="List projects")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("clear", help="Delete all projects")
    p.add_argument("-y", "--yes", action="store_true")
    p.set_defaults(func=cmd_clear)

    p = sub.add_parser("mode", help="Show or switch the API mode")
    p.add_argument("mode", nargs="?", choices=["real", "simulation", "env"])
    p.set_defaults(func=cmd_mode)

    return parser


def main(argv=None) -> int:
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
