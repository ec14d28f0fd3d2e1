# etl/seed_library.py
import sys

from etl.config import DB, LIBRARY_PATH
from etl.db import count_rows, get_conn
from holyverso.library import LibraryStore, load_library_files


def seed_library(conn, path):
    entries = load_library_files(path)
    store = LibraryStore(conn)
    created = 0
    updated = 0
    for entry in entries:
        if store.upsert_entry(entry):
            created += 1
            print(f"NEW {entry['reference_key']} theme={entry['theme']}")
        else:
            updated += 1
            print(f"SKIP {entry['reference_key']} theme={entry['theme']}")
    return {"total": len(entries), "created": created, "updated": updated}


def main(path=LIBRARY_PATH):
    conn = get_conn(DB)
    conn.autocommit = False

    try:
        stats = seed_library(conn, path)
        conn.commit()
        print(
            f"DONE total={stats['total']} created={stats['created']} "
            f"updated={stats['updated']} library_rows={count_rows(conn, 'library_verse')}"
        )
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else LIBRARY_PATH)
