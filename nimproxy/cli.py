#!/usr/bin/env python3
"""
nimproxy CLI.

Every command has a short name and standard aliases:

    COMMAND         ALIASES         WHAT IT DOES
    -------         -------         ----------------------------------
    serve           dial, start     Start the gateway server
    ring            ping, status    Ping a running instance
    flash           info, config    Show resolved settings and model map
    route           resolve         Show which NIM model a name maps to
"""

import argparse
import os

from nimproxy import __version__

BANNER = f"  nimproxy v{__version__} — OpenAI in, NVIDIA NIM out"


def _settings(args):
    from nimproxy.config import get_settings
    return get_settings(args.config) if getattr(args, "config", None) else get_settings()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_serve(args):
    """Start the gateway server."""
    import uvicorn

    if args.config:
        # nimproxy.main builds its app at import time from this path
        os.environ["NIMPROXY_CONFIG"] = args.config

    cfg = _settings(args)
    host = args.host or cfg.host
    port = args.port or cfg.port

    print(BANNER)
    print(f"  Dialing up on {host}:{port}")
    print(f"  Backend: {cfg.backend_url}")
    print(f"  Fallback model: {cfg.fallback_model}")
    print()

    uvicorn.run(
        "nimproxy.main:app",
        host=host,
        port=port,
        reload=args.reload,
        log_level="info",
    )


def cmd_ring(args):
    """Ping a running nimproxy instance."""
    import httpx

    url = (args.url or "http://localhost:3000").rstrip("/")
    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        if resp.status_code == 200:
            health = resp.json()
            print(f"  Ring ring... {url} is UP")
            print(f"  Service:           {health.get('service', '?')}")
            print(f"  Reasoning display: {health.get('reasoning_display')}")
            print(f"  Thinking mode:     {health.get('thinking_mode')}")

            models = httpx.get(f"{url}/v1/models", timeout=5).json()
            names = [m.get("id", "") for m in models.get("data", [])]
            print(f"  Models:            {', '.join(names) if names else 'none'}")
        else:
            print(f"  ✗  No answer — got HTTP {resp.status_code}")
    except httpx.ConnectError:
        print(f"  ✗  Dead line — nothing at {url}")
    except httpx.HTTPError as e:
        print(f"  ✗  Error: {e}")


def cmd_flash(args):
    """Show resolved settings at a glance."""
    cfg = _settings(args)
    info = cfg.redacted()

    print(BANNER)
    print("  Configuration")
    print(f"  ├─ Backend:     {info['backend_url']}")
    print(f"  ├─ API key:     {info['api_key'] or '(missing)'}")
    print(f"  ├─ Listen:      {info['host']}:{info['port']}")
    print(f"  ├─ Timeout:     {info['timeout'] or 'none'}")
    print(f"  ├─ Defaults:    temperature={info['default_temperature']} max_tokens={info['default_max_tokens']}")
    print(f"  ├─ Reasoning:   {'shown' if info['show_reasoning'] else 'hidden'}")
    print(f"  └─ Thinking:    {'on' if info['enable_thinking'] else 'off'}")
    print()
    print("  Models")
    for name, backend_model in cfg.model_map.items():
        print(f"  ├─ {name:<20} → {backend_model}")
    print(f"  └─ {'(anything else)':<20} → {cfg.fallback_model}")


def cmd_route(args):
    """Print the NIM model id a client model name resolves to."""
    from nimproxy.resolver import ModelResolver

    cfg = _settings(args)
    resolver = ModelResolver(cfg.model_map, cfg.fallback_model)
    for name in args.model:
        marker = "" if name in cfg.model_map else "  (fallback)"
        print(f"  {name} → {resolver.resolve(name)}{marker}")


# ---------------------------------------------------------------------------
# Parser with aliases
# ---------------------------------------------------------------------------

def _add_command(subparsers, names, help_text, func, setup_fn=None):
    """Register a command under multiple names."""
    p = subparsers.add_parser(names[0], help=help_text, aliases=names[1:])
    p.set_defaults(func=func)
    p.add_argument("--config", "-c", default=None, help="Path to config.yaml")
    if setup_fn:
        setup_fn(p)
    return p


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nimproxy",
        description="nimproxy — OpenAI-compatible gateway for NVIDIA NIM.",
        epilog="Run 'nimproxy <command> --help' for command-specific options.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", "-V", action="version",
        version=f"nimproxy {__version__}",
    )

    sub = parser.add_subparsers(dest="command", metavar="<command>")

    def setup_serve(p):
        p.add_argument("--host", default=None, help="Override listen host")
        p.add_argument("--port", "-p", type=int, default=None, help="Override listen port")
        p.add_argument("--reload", action="store_true", help="Auto-reload on code changes (dev)")

    _add_command(sub, ["serve", "dial", "start"],
                 "Start the gateway server", cmd_serve, setup_serve)

    def setup_ring(p):
        p.add_argument("--url", "-u", default=None, help="Gateway URL (default: http://localhost:3000)")

    _add_command(sub, ["ring", "ping", "status"],
                 "Ping a running nimproxy instance", cmd_ring, setup_ring)

    _add_command(sub, ["flash", "info", "config"],
                 "Show resolved settings and model map", cmd_flash)

    def setup_route(p):
        p.add_argument("model", nargs="+", help="Client-facing model name(s)")

    _add_command(sub, ["route", "resolve"],
                 "Show which NIM model a client model name maps to", cmd_route, setup_route)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        print(BANNER)
        parser.print_help()
        return

    args.func(args)


if __name__ == "__main__":
    main()
