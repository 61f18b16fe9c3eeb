# app/config.py
import os

from dotenv import load_dotenv

# Завантаження змінних середовища
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./contacts.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Cloudinary (аватари контактів)
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET")
MAX_AVATAR_BYTES = int(os.getenv("MAX_AVATAR_BYTES", 5 * 1024 * 1024))

# Затримки в секундах
NOTES_AUTOSAVE_DELAY = float(os.getenv("NOTES_AUTOSAVE_DELAY", 0.5))
SEARCH_DEBOUNCE_DELAY = float(os.getenv("SEARCH_DEBOUNCE_DELAY", 0.3))

# Ширина вікна, нижче якої список працює в мобільному режимі
MOBILE_BREAKPOINT = int(os.getenv("MOBILE_BREAKPOINT", 1024))

# Розміри елементів списку (в пікселях)
HEADER_HEIGHT = 48
ROW_HEIGHT = 40
DEFAULT_VIEWPORT_HEIGHT = 600
OVERSCAN = 3

FAVORITES_GROUP_NAME = "Favorites"
FAVORITES_GROUP_ICON = "⭐"
