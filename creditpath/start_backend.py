#!/usr/bin/env python3
"""
Service startup wrapper for local runs.

Host and port come from CREDITPATH_HOST / CREDITPATH_PORT.
"""
import os
import sys

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)


def main() -> None:
    import uvicorn

    host = os.getenv("CREDITPATH_HOST", "0.0.0.0")
    port = int(os.getenv("CREDITPATH_PORT", "8000"))
    print(f"[creditpath] Serving on http://{host}:{port}")
    try:
        uvicorn.run(
            "creditpath.main:app",
            host=host,
            port=port,
            reload=False,
            log_level="info",
            access_log=True,
        )
    except KeyboardInterrupt:
        print("\n[creditpath] Shutting down...")
        sys.exit(0)


if __name__ == "__main__":
    main()
