import os

from dotenv import load_dotenv

# Load environment variables before the app reads its settings
load_dotenv()

from glassquote.main import app  # noqa: E402

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("UVICORN_RELOAD", "0") == "1",
    )
