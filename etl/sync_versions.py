# etl/sync_versions.py
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from etl.config import DB, MAX_RETRY
from etl.db import get_conn
from holyverso.bible_client import BibleApiClient
from holyverso.errors import BibleApiError
from holyverso.versions import VersionStore, sync_versions


@retry(
    stop=stop_after_attempt(MAX_RETRY),
    wait=wait_exponential(multiplier=1, min=2, max=8),
    retry=retry_if_exception_type(BibleApiError),
    reraise=True,
)
def fetch_versions(client):
    return client.get_versions()


def main(client=None):
    client = client or BibleApiClient()
    versions = fetch_versions(client)
    print(f"FETCHED versions={len(versions)}")

    conn = get_conn(DB)
    conn.autocommit = False

    try:
        stats = sync_versions(VersionStore(conn), versions)
        conn.commit()
        print(
            f"DONE total={stats['total']} created={stats['created']} "
            f"updated={stats['updated']} skipped={stats['skipped']}"
        )
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


if __name__ == "__main__":
    main()
