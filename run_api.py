"""
Launcher for the FloorPlanGPT API (analyze, chat, text-to-speech).
"""

import argparse
import socket
from contextlib import closing
from pathlib import Path

import uvicorn
from dotenv import load_dotenv, find_dotenv

from floorplan.config import get_settings

# Load environment variables early
load_dotenv(find_dotenv())


def _port_available(host: str, port: int) -> bool:
    """Return True if we can bind to the given host:port."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        try:
            s.bind((host, port))
            return True
        except OSError:
            return False


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Run the FloorPlanGPT API")
    parser.add_argument("--host", default=settings.HOST)
    parser.add_argument("--port", type=int, default=settings.PORT)
    parser.add_argument(
        "--reload",
        action="store_true",
        default=False,
        help="Enable auto-reload (dev only)",
    )
    args = parser.parse_args()

    host = args.host
    port = args.port
    if not _port_available(host, port):
        print(f"[run_api] Port {port} is busy; selecting an ephemeral port.")
        port = 0

    uvicorn_kwargs = dict(
        host=host,
        port=port,
        reload=args.reload,
        log_level=settings.LOG_LEVEL.lower(),
        proxy_headers=True,
        forwarded_allow_ips="*",
    )
    if args.reload:
        base = Path(__file__).parent
        # Limit what we watch and exclude chatty directories like the venv
        uvicorn_kwargs.update(
            {
                "reload_dirs": [str(base / "floorplan"), str(base / "api")],
                "reload_excludes": [
                    ".venv/*",
                    "venv/*",
                    "**/__pycache__/*",
                    "**/*.pyc",
                    ".git/*",
                ],
            }
        )
    # Uvicorn needs an import string for reload; use it in both modes
    uvicorn.run("api.server:app", **uvicorn_kwargs)


if __name__ == "__main__":
    main()
