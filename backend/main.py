# backend/main.py
# Run with: uvicorn main:app --app-dir backend
import os

import uvicorn

from hedger.app_factory import create_app

app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
