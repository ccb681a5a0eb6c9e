"""Run the group management API with uvicorn.
Usage: python run.py   (HOST/PORT are read from the environment)
"""
import uvicorn

from groupdesk.config import settings
from groupdesk.main import app

if __name__ == "__main__":
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, reload=False)
