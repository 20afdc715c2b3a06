"""
Constants for CloudNav.

Storage key names, timings and the built-in seed data used when neither the
remote store nor the local cache has anything to offer. The sync layer never
reads these directly; they are the defaults baked into ``SyncOptions``.
"""

# Local storage keys
DATA_CACHE_KEY = "cloudnav_data_cache"
AUTH_TOKEN_KEY = "cloudnav_auth_token"
WEBDAV_CONFIG_KEY = "cloudnav_webdav_config"
AI_CONFIG_KEY = "cloudnav_ai_config"

# Remote endpoint
STORAGE_ENDPOINT_PATH = "/api/storage"
AUTH_HEADER = "x-auth-password"

# Network timeouts (in seconds)
DEFAULT_REQUEST_TIMEOUT = 10

# Seconds a "saved" status stays visible before reverting to "idle"
SAVED_RESET_DELAY = 2.0

# Links of a deleted category move here
FALLBACK_CATEGORY_ID = "common"

DEFAULT_CATEGORY_ICON = "Folder"

WEBDAV_BACKUP_FILENAME = "cloudnav_backup.json"

DEFAULT_AI_PROVIDER = "gemini"
DEFAULT_AI_MODEL = "gemini-2.5-flash"

DEFAULT_SITE_SETTINGS = {
    "title": "CloudNav - My Navigation",
    "navTitle": "CloudNav",
    "favicon": "/favicon.ico",
    "cardStyle": "detailed",
}

# The first entry doubles as the category reinserted when all are deleted
DEFAULT_CATEGORIES = [
    {"id": "common", "name": "Common", "icon": "Star"},
    {"id": "dev", "name": "Development", "icon": "Code"},
    {"id": "design", "name": "Design", "icon": "Palette"},
    {"id": "read", "name": "Reading", "icon": "BookOpen"},
    {"id": "ent", "name": "Entertainment", "icon": "Gamepad2"},
    {"id": "ai", "name": "AI Tools", "icon": "Bot"},
]

INITIAL_LINKS = [
    {
        "id": "1",
        "title": "GitHub",
        "url": "https://github.com",
        "categoryId": "dev",
        "createdAt": 1700000000000,
        "description": "Where the world builds software",
    },
    {
        "id": "2",
        "title": "React",
        "url": "https://react.dev",
        "categoryId": "dev",
        "createdAt": 1700000000001,
        "description": "The library for web and native user interfaces",
    },
    {
        "id": "3",
        "title": "Tailwind CSS",
        "url": "https://tailwindcss.com",
        "categoryId": "design",
        "createdAt": 1700000000002,
        "description": "Rapidly build modern websites without leaving your HTML",
    },
    {
        "id": "4",
        "title": "ChatGPT",
        "url": "https://chat.openai.com",
        "categoryId": "ai",
        "createdAt": 1700000000003,
        "description": "OpenAI chat assistant",
    },
    {
        "id": "5",
        "title": "Gemini",
        "url": "https://gemini.google.com",
        "categoryId": "ai",
        "createdAt": 1700000000004,
        "description": "Google AI assistant",
    },
]
