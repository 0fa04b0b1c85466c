"""Convenience launcher for the dashboard API.

Usage:
  python run_api.py [--host 0.0.0.0] [--port 8000] [--reload]

Settings (SUPABASE_URL, SUPABASE_SERVICE_KEY, CORS_ORIGINS, LOG_LEVEL) are
read from the environment or a ``.env`` file in the project root.
"""

import argparse

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the rounds issues dashboard API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args()
    uvicorn.run("rounds_app.api.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
