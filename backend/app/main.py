import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend dir before anything reads GOOGLE_API_KEY.
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))
logging.basicConfig(level=logging.INFO)

from routes.workflow_ws import router as workflow_ws_router  # noqa: E402
from routes.workflows import router as workflows_router  # noqa: E402
from services.settings import get_allowed_origins  # noqa: E402

app = FastAPI(title="Product Video Studio API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_allowed_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(workflows_router, prefix="/api")
app.include_router(workflow_ws_router, prefix="/api")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
