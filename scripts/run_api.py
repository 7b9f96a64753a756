#!/usr/bin/env python
"""
Run the Commercial Pricing API with uvicorn.

Usage:
    python scripts/run_api.py [--host 0.0.0.0] [--port 8000] [--no-reload]
"""
import argparse
import sys
from pathlib import Path

import uvicorn

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))


def main():
    parser = argparse.ArgumentParser(description="Serve the pricing API")
    parser.add_argument('--host', default='0.0.0.0')
    parser.add_argument('--port', type=int, default=8000)
    parser.add_argument('--no-reload', action='store_true', help="Disable auto-reload")
    args = parser.parse_args()

    print(f"Starting Commercial Pricing API on {args.host}:{args.port}...")
    try:
        uvicorn.run(
            "commercial_pricing.api.main:app",
            host=args.host,
            port=args.port,
            reload=not args.no_reload,
            reload_dirs=[str(src_path)] if not args.no_reload else None,
        )
    except KeyboardInterrupt:
        print("\nAPI stopped.")


if __name__ == "__main__":
    main()
