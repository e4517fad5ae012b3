"""DocMS Web — FastAPI operational endpoints served by uvicorn."""
