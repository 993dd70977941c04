"""
Constants and configuration values for the Danbooru Explorer application.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# File paths
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Load environment variables from .env file if it exists
env_path = Path(BASE_DIR).parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

DATA_DIR = os.getenv(
    "DANBOORU_EXPLORER_DATA_DIR",
    os.path.join(Path.home(), ".danbooru_explorer"),
)
CACHE_DIR = os.path.join(DATA_DIR, "image_cache")
DATABASE_PATH = os.path.join(DATA_DIR, "danbooru_explorer.db")

# Danbooru API
DANBOORU_BASE_URL = os.getenv(
    "DANBOORU_EXPLORER_BASE_URL", "https://danbooru.donmai.us"
).rstrip("/")
USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Safari/605.1.15"
# Sent on every connection; Accept and Referer are set per request
SESSION_HEADERS = {"User-Agent": USER_AGENT}
API_ACCEPT = "application/json"
IMAGE_HEADERS = {
    "Accept": "image/jpeg,image/png,*/*;q=0.5",
    "Referer": DANBOORU_BASE_URL,
}

# Transport
MAX_CONNECTIONS_PER_HOST = 3
API_REQUEST_TIMEOUT = 30  # seconds
API_RESOURCE_TIMEOUT = 60  # seconds
IMAGE_REQUEST_TIMEOUT = 15  # seconds
IMAGE_RESOURCE_TIMEOUT = 30  # seconds
CONNECTIVITY_POLL_INTERVAL = 1.0  # seconds

# Image loading
IMAGE_MAX_ATTEMPTS = 3
IMAGE_RETRY_BASE_DELAY = 0.2  # seconds, doubled after every failed attempt
MEMORY_CACHE_MAX_ENTRIES = 256
DEFAULT_DISK_CACHE_LIMIT_BYTES = 256 * 1024 * 1024
BYTES_PER_MEGABYTE = 1_048_576

# Paging
DEFAULT_POSTS_LIMIT = 20
MAX_POSTS_LIMIT = 200
DEFAULT_TAGS_LIMIT = 10
COMMENTS_PAGE_SIZE = 40

# Search history
MAX_RECENT_SEARCHES = 30
MAX_UNPINNED_SAVED_SEARCHES = 20

# Credentials
KEYRING_SERVICE = "DanbooruExplorer.Danbooru"
KEYRING_USERNAME_KEY = "username"
KEYRING_API_KEY_KEY = "apiKey"

# Logging
LOG_LEVEL = os.getenv("DANBOORU_EXPLORER_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
