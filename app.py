# Entry point for `uvicorn app:application` (Procfile / local runs)
from backend.app import application  # noqa: F401

if __name__ == "__main__":
    import uvicorn

    from backend.config import LOG_LEVEL

    # Dev server with hot-reload
    uvicorn.run("backend.app:application", host="0.0.0.0", port=8000, reload=True, log_level=LOG_LEVEL.lower())
