#!/usr/bin/env python3
"""
Run the AppRelay backend server.
"""
import uvicorn

from apprelay.config import get_settings

settings = get_settings()

if __name__ == "__main__":
    uvicorn.run(
        "apprelay.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )
