#!/usr/bin/env python
"""
Server Entry Point

Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py

    Or with Gunicorn:
    gunicorn trafficflow.main:app -c gunicorn.conf.py
"""

import argparse
import os
import subprocess

import uvicorn

APP_PATH = "trafficflow.main:app"


def run_dev_server(port: int):
    """Run development server with auto-reload."""
    uvicorn.run(
        APP_PATH,
        host="127.0.0.1",
        port=port,
        reload=True,
        reload_dirs=["trafficflow"],
        log_level="debug",
        access_log=True,
    )


def run_prod_server(port: int):
    """Run production server with Uvicorn directly."""
    workers = int(os.getenv("WORKERS", 4))

    # Tokens live in process memory unless the Redis credential store is configured
    if workers > 1 and os.getenv("CREDENTIALS_BACKEND", "memory").lower() != "redis":
        print("Multiple workers with the in-memory credential store; forcing a single worker.")
        workers = 1

    uvicorn.run(
        APP_PATH,
        host="0.0.0.0",
        port=port,
        workers=workers,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        access_log=True,
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
        date_header=True,
    )


def run_gunicorn():
    """Run with Gunicorn."""
    subprocess.run(["gunicorn", APP_PATH, "-c", "gunicorn.conf.py"], check=False)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Traffic Flow Dashboard API Server")
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Run in development mode with auto-reload"
    )
    parser.add_argument(
        "--gunicorn",
        action="store_true",
        help="Run with Gunicorn (production)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", 8000)),
        help="Port to run on (default: 8000)"
    )

    args = parser.parse_args()
    os.environ["PORT"] = str(args.port)

    if args.dev:
        print("Starting development server...")
        run_dev_server(args.port)
    elif args.gunicorn:
        print("Starting production server with Gunicorn...")
        run_gunicorn()
    else:
        print("Starting production server with Uvicorn...")
        run_prod_server(args.port)
