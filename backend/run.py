"""
Development server entry point.

Usage:
    python run.py              # normal mode
    python run.py --reload     # with auto-reload
"""
import argparse

import uvicorn

if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--reload", action="store_true", default=False)
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    uvicorn.run(
        "channel_dashboard.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )
