from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Any, List, Optional

from . import __version__
from .config import PilotConfig, load_config


def eprint(msg: str) -> None:
    print(msg, file=sys.stderr)


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _load_config(args: argparse.Namespace) -> PilotConfig:
    config_path = Path(args.config) if args.config else None
    root = Path(getattr(args, "project_root", None) or ".")
    return load_config(config_path=config_path, root=root)


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0: {value}")
    return number


def _read_text_arg(value: str) -> str:
    """Read a file path argument, or stdin for "-"."""
    if value == "-":
        return sys.stdin.read()
    return Path(value).read_text(encoding="utf-8")


def command_analyze(args: argparse.Namespace) -> int:
    """Clone a repository and list candidate user flows."""
    from .services.flow_service import FlowIdentificationError, FlowService

    config = _load_config(args)
    service = FlowService(config=config)
    try:
        analysis = service.identify_user_flows(args.repo_url, app_url=args.app_url)
    except FlowIdentificationError as e:
        eprint(str(e))
        return 1

    if args.json:
        print_json(analysis.to_dict())
        return 0

    if analysis.cloned_repo_path:
        print(f"Repository cloned to: {analysis.cloned_repo_path}")
    if not analysis.flows:
        print("No user flows identified.")
        return 0
    print("Identified user flows:")
    for flow in analysis.flows:
        print(f"  - {flow}")
    return 0


def command_generate(args: argparse.Namespace) -> int:
    """Generate Cypress test code for one flow."""
    from .agents.generator import GenerationError, TestGenerator

    config = _load_config(args)
    generator = TestGenerator(model=config.generator.model, timeout=config.generator.timeout_seconds)
    try:
        code = generator.generate(args.flow, args.type, args.app_details)
    except GenerationError as e:
        eprint(str(e))
        return 1

    if args.out:
        out = Path(args.out)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(code, encoding="utf-8")
        print(f"✓ Wrote {out}")
    else:
        sys.stdout.write(code)
    return 0


def _spec_name(args: argparse.Namespace) -> str:
    from .materialize import spec_file_name_for_flow

    if args.spec_name:
        return args.spec_name
    if args.flow:
        return spec_file_name_for_flow(args.flow)
    return Path(args.test_file).name if args.test_file != "-" else "generated.cy.ts"


def command_run(args: argparse.Namespace) -> int:
    """Save a spec into a project and run it headlessly."""
    from .report import ExecutionStatus
    from .run import execute
    from .timeline import create_timeline_logger

    config = _load_config(args)
    if args.engines is not None:
        engines = [e.strip() for e in args.engines.split(",") if e.strip()]
        if not engines:
            eprint(f"Error: --engines needs at least one browser name, got {args.engines!r}")
            return 2
        config.runner.engines = engines
    if args.timeout is not None:
        config.runner.timeout_seconds = args.timeout

    timeline = create_timeline_logger(Path(args.logs_dir)) if args.logs_dir else None

    cancel_event = threading.Event()
    previous_handler = signal.signal(signal.SIGINT, lambda *_: cancel_event.set())
    try:
        result = execute(
            _read_text_arg(args.test_file),
            Path(args.project_root),
            _spec_name(args),
            config=config,
            timeline=timeline,
            cancel_event=cancel_event,
        )
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if args.json:
        print_json(result.to_dict())
    else:
        marker = "✓" if result.success else "✗"
        print(f"{marker} {result.status.value}: {result.message}")
        if result.run_summary:
            print(result.run_summary)
        if not result.success and result.detailed_log:
            eprint(result.detailed_log)

    return 0 if result.status == ExecutionStatus.COMPLETED_SUCCESSFULLY else 1


def command_launch(args: argparse.Namespace) -> int:
    """Save a spec and start a headed run in the background."""
    from .launch import LaunchStatus, launch_headed

    config = _load_config(args)
    result = launch_headed(
        _read_text_arg(args.test_file),
        Path(args.project_root),
        _spec_name(args),
        config=config,
    )
    if args.json:
        print_json(result.to_dict())
    else:
        print(f"{result.status.value}: {result.message}")
        if result.status == LaunchStatus.ERROR and result.detailed_log:
            eprint(result.detailed_log)
    return 0 if result.status == LaunchStatus.LAUNCHED else 1


def command_serve(args: argparse.Namespace) -> int:
    """Start the REST API server."""
    import uvicorn

    uvicorn.run("server.api:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _add_spec_args(sp: argparse.ArgumentParser) -> None:
    sp.add_argument("--project-root", required=True, help="Cypress project root (e.g. a cloned repository)")
    sp.add_argument("--test-file", required=True, help="File holding the test code ('-' for stdin)")
    sp.add_argument("--spec-name", default=None, help="Spec file name inside cypress/e2e")
    sp.add_argument("--flow", default=None, help="Derive the spec file name from a user flow name")
    sp.add_argument("--json", action="store_true", help="Print the result as JSON")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="cypress-pilot", description="cypress-pilot CLI")
    p.add_argument("-V", "--version", action="version", version=f"cypress-pilot {__version__}")
    p.add_argument("-c", "--config", default=None, help="Path to .cypress-pilot/pilot.yml")
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("analyze", help="Clone a repository and identify user flows")
    sp.add_argument("repo_url", help="Repository URL to clone")
    sp.add_argument("--app-url", default=None, help="URL of the running application (context only)")
    sp.add_argument("--json", action="store_true", help="Print the analysis as JSON")
    sp.set_defaults(func=command_analyze)

    sp = sub.add_parser("generate", help="Generate Cypress test code for a user flow")
    sp.add_argument("--flow", required=True, help="User flow description, e.g. 'User Login'")
    sp.add_argument("--type", default="E2E", choices=["E2E", "Component"], help="Kind of test")
    sp.add_argument("--app-details", default="", help="App URL and repository link")
    sp.add_argument("--out", default=None, help="Write the code to this file instead of stdout")
    sp.set_defaults(func=command_generate)

    sp = sub.add_parser("run", help="Save a spec and run it headlessly with browser fallback")
    _add_spec_args(sp)
    sp.add_argument("--engines", default=None, help="Comma-separated browser order (default: chrome,firefox)")
    sp.add_argument("--timeout", type=_positive_float, default=None, help="Per-attempt timeout in seconds")
    sp.add_argument("--logs-dir", default=None, help="Write a timeline.jsonl here")
    sp.set_defaults(func=command_run)

    sp = sub.add_parser("launch", help="Save a spec and start a headed run")
    _add_spec_args(sp)
    sp.set_defaults(func=command_launch)

    sp = sub.add_parser("serve", help="Start the REST API server")
    sp.add_argument("--host", default="127.0.0.1")
    sp.add_argument("--port", type=int, default=8000)
    sp.add_argument("--reload", action="store_true", help="Auto-reload on code changes")
    sp.set_defaults(func=command_serve)

    return p


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        rc = int(args.func(args))
    except (FileNotFoundError, ValueError) as e:
        eprint(f"Error: {e}")
        rc = 2
    raise SystemExit(rc)
