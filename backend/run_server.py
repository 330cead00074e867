"""
Run the Crypto TA Engine server.
"""
import os

from dotenv import load_dotenv
import uvicorn

backend_dir = os.path.dirname(os.path.abspath(__file__))

# Load environment before settings are read
load_dotenv(os.path.join(backend_dir, ".env"))

if __name__ == "__main__":
    from ta_engine.core.config import settings

    print(f"Starting {settings.app_name}...")
    print(f"API Docs: http://localhost:{settings.port}/docs")
    print("-" * 50)

    uvicorn.run(
        "ta_engine.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        app_dir=backend_dir,
    )
