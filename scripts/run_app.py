#!/usr/bin/env python3
"""Launch the Top Stories reader API.

This script handles:
- Checking that the NYT API key is configured
- Preparing the directory of the durable state file
- Starting the FastAPI backend under uvicorn and waiting for it to be healthy
- Graceful shutdown on Ctrl+C
"""

from __future__ import annotations

import argparse
import os
import subprocess
import sys
import time
from pathlib import Path
from typing import Sequence

import httpx

ROOT_DIR = Path(__file__).resolve().parents[1]
UVICORN_APP = "top_stories.api.server:app"
DEFAULT_STATE_FILE = ROOT_DIR / ".state" / "top_stories.json"


def check_env_vars() -> list[str]:
    """Check for required environment variables and return list of missing ones."""
    required = ["NYT_API_KEY"]
    optional = ["NYT_BASE_URL", "REQUEST_TIMEOUT_MS", "STATE_FILE"]

    missing = [var for var in required if not os.environ.get(var)]

    if missing:
        print(f"[env] WARNING: Missing required environment variables: {', '.join(missing)}")
        print("[env] Please set these in your .env file or environment.")

    for var in optional:
        if not os.environ.get(var):
            print(f"[env] Note: Optional variable {var} not set.")

    return missing


def ensure_state_dir(state_file: Path, reset: bool = False) -> None:
    """Ensure the directory holding the persisted cache exists.

    Args:
        state_file: Path of the JSON state file.
        reset: If True, delete the existing state file (cache and preferences).
    """
    if reset and state_file.exists():
        print(f"[state] Removing persisted state at {state_file}...")
        state_file.unlink()

    if not state_file.parent.exists():
        print(f"[state] Creating state directory at {state_file.parent}...")
        state_file.parent.mkdir(parents=True, exist_ok=True)


def launch_backend(command: Sequence[str], env: dict[str, str]) -> subprocess.Popen:
    print(f"[backend] {' '.join(command)}")
    return subprocess.Popen(command, cwd=ROOT_DIR, env=env)  # noqa: S603 - built in main()


def backend_is_healthy(base_url: str) -> bool:
    try:
        response = httpx.get(f"{base_url}/health", timeout=3.0)
    except httpx.HTTPError:
        return False
    return response.status_code == 200 and response.json().get("status") == "ok"


def wait_until_healthy(base_url: str, proc: subprocess.Popen, timeout: float) -> bool:
    """Poll /health until it answers, the server dies, or ``timeout`` passes."""

    print(f"[backend] Waiting for {base_url}/health ...")
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline and proc.poll() is None:
        if backend_is_healthy(base_url):
            print("[backend] Healthy.")
            return True
        time.sleep(1.0)
    print("[backend] Not healthy yet; continuing to watch the process.")
    return False


def stop_backend(proc: subprocess.Popen | None, grace: float = 10.0) -> None:
    if proc is None or proc.poll() is not None:
        return
    print("[backend] Stopping...")
    proc.terminate()
    try:
        proc.wait(timeout=grace)
    except subprocess.TimeoutExpired:
        print(f"[backend] Still running after {grace:.0f}s, killing.")
        proc.kill()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Start the Top Stories reader API.")
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host/interface for the FastAPI server (default: 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the FastAPI server (default: 8000).",
    )
    parser.add_argument(
        "--startup-timeout",
        type=float,
        default=30.0,
        help="Seconds to wait for the health endpoint.",
    )
    parser.add_argument(
        "--no-reload",
        action="store_true",
        help="Disable uvicorn auto-reload (enabled by default).",
    )
    parser.add_argument(
        "--state-file",
        type=Path,
        default=None,
        help=f"Where to persist the cache and preferences (default: {DEFAULT_STATE_FILE}).",
    )
    parser.add_argument(
        "--reset-state",
        action="store_true",
        help="Delete persisted cache and preferences before starting.",
    )
    parser.add_argument(
        "--skip-env-check",
        action="store_true",
        help="Skip checking for required environment variables.",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    if not args.skip_env_check:
        missing = check_env_vars()
        if missing:
            print("[env] Continuing anyway; article requests will fail until the key is set.")

    state_file = args.state_file or Path(os.environ.get("STATE_FILE") or DEFAULT_STATE_FILE)
    ensure_state_dir(state_file, reset=args.reset_state)

    base_url = f"http://{args.host}:{args.port}"
    env = os.environ.copy()
    env["STATE_FILE"] = str(state_file)

    backend_cmd = [
        sys.executable,
        "-m",
        "uvicorn",
        UVICORN_APP,
        "--app-dir",
        str(ROOT_DIR / "src"),
        "--host",
        args.host,
        "--port",
        str(args.port),
    ]
    if not args.no_reload:
        backend_cmd.append("--reload")

    backend_proc = None
    try:
        backend_proc = launch_backend(backend_cmd, env)
        wait_until_healthy(base_url, backend_proc, args.startup_timeout)
        print(f"[runner] Backend API: {base_url}")
        print(f"[runner] API Docs: {base_url}/docs")

        while backend_proc.poll() is None:
            time.sleep(0.5)
        print(f"[backend] exited with status {backend_proc.returncode}.")
    except KeyboardInterrupt:
        print("\n[runner] Caught KeyboardInterrupt. Shutting down...")
    finally:
        stop_backend(backend_proc)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
