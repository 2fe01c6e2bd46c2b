import os

# In-memory defaults so importing the app never touches a real database file
# or starts the daily scheduler.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENABLE_CREATE_ALL", "0")
os.environ.setdefault("ENABLE_SCHEDULER", "0")
os.environ.setdefault("SECRET_KEY", "test-secret")
