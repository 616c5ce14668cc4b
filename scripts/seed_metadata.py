"""
Fill the metadata lists (clients, processes, countries, document types,
renewal agents) from the distinct values already present on projects.

Safe to re-run: existing names are left alone.
"""
import os
import sys

from sqlmodel import Session

# Add current directory to path
sys.path.append(os.getcwd())

from patentflow.db.session import engine, init_db
from patentflow.services.metadata import seed_from_projects


def main():
    print("--- Seeding metadata from projects ---")
    init_db()
    with Session(engine) as session:
        added = seed_from_projects(session)
    for kind, count in added.items():
        print(f"{kind}: {count} added")


if __name__ == "__main__":
    main()
