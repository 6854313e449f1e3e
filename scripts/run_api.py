"""
Launch the gas pricing API under uvicorn with auto-reload.

Reads price data from GAS_PRICING_DATA_DIR when set, otherwise from the
bundled sample snapshot. GAS_PRICING_HOST / GAS_PRICING_PORT override the
bind address.
"""
import os
import subprocess
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def build_env() -> dict:
    """Copy of the environment with ``src`` first on PYTHONPATH."""
    env = os.environ.copy()
    src_path = str(PROJECT_ROOT / "src")
    existing = env.get("PYTHONPATH")
    env["PYTHONPATH"] = f"{src_path}{os.pathsep}{existing}" if existing else src_path
    return env


def main():
    env = build_env()
    host = env.get("GAS_PRICING_HOST", "0.0.0.0")
    port = env.get("GAS_PRICING_PORT", "8000")
    data_dir = env.get("GAS_PRICING_DATA_DIR", "bundled sample snapshot")

    print(f"Starting Gas Pricing API on {host}:{port} ({data_dir})...")
    command = [
        sys.executable, "-m", "uvicorn",
        "gas_pricing.api.main:app",
        "--host", host,
        "--port", str(port),
        "--reload",
    ]
    try:
        subprocess.run(command, env=env, cwd=PROJECT_ROOT)
    except KeyboardInterrupt:
        print("\nAPI stopped.")


if __name__ == "__main__":
    main()
