import os
import sys

# Add current directory to path
sys.path.append(os.getcwd())

from patentflow.core.config import settings
from patentflow.db.session import init_db

if __name__ == "__main__":
    print(f"Creating tables for {settings.DATABASE_URL or 'local SQLite'}...")
    init_db()
    print("Done.")
