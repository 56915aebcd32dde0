"""
Main application entry point for the dental receptionist.
"""

import uvicorn
from dotenv import load_dotenv

load_dotenv()

from .config import get_settings  # noqa: E402
from .api.app import create_app  # noqa: E402
from .utils.logging import configure_logging  # noqa: E402

configure_logging(get_settings().log_level)

# Create the FastAPI application
app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "dental_receptionist.main:app",
        host="0.0.0.0",
        port=8001,
        reload=True
    )
