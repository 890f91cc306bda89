from . import settings as base

# copy all UPPERCASE settings from base into this module
for name in dir(base):
    if name.isupper():
        globals()[name] = getattr(base, name)

# override DB for tests
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "dto-tests",
    }
}

# never reach real services from tests
SUPABASE_URL = ""
SUPABASE_KEY = ""
GEMINI_API_KEY = ""
GEMINI_MODELS = ["gemini-3-flash-preview", "gemini-2.0-flash-exp", "gemini-1.5-flash"]
SENTRY_DSN = ""
