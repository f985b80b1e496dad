#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Usage:
    python run.py
"""
from pathlib import Path
import sys

backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

import uvicorn

from slotengine.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "slotengine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
