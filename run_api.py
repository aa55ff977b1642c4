#!/usr/bin/env python3
"""
Run the Incident Intake API.
Set GEOCODER_URL in environment (or .env) to geocode spoken locations; otherwise locations stay text-only.
"""
import os

from dotenv import load_dotenv

load_dotenv()

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "api.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 8000)),
        reload=os.environ.get("RELOAD", "0") == "1",
        log_level=os.environ.get("LOG_LEVEL", "INFO").lower(),
    )
