import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Public rooms created at startup
SEED_ROOMS = [r.strip() for r in os.getenv("SEED_ROOMS", "General,Sports,Tech").split(",") if r.strip()]

# Chat throttling: MESSAGE_LIMIT messages per MESSAGE_WINDOW_SECONDS per connection
MESSAGE_LIMIT = int(os.getenv("MESSAGE_LIMIT", 10))
MESSAGE_WINDOW_SECONDS = float(os.getenv("MESSAGE_WINDOW_SECONDS", 10))
MAX_MESSAGE_LENGTH = int(os.getenv("MAX_MESSAGE_LENGTH", 2000))

INVITE_CODE_LENGTH = int(os.getenv("INVITE_CODE_LENGTH", 7))

UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(os.getcwd(), "uploads"))
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", 5 * 1024 * 1024))  # 5 MB
ALLOWED_MIMES = frozenset(
    m.strip()
    for m in os.getenv(
        "ALLOWED_MIMES",
        "image/png,image/jpeg,image/gif,image/webp,image/svg+xml,application/pdf,text/plain",
    ).split(",")
    if m.strip()
)
