# etl/db.py
import psycopg2


def get_conn(cfg):
    return psycopg2.connect(**cfg)


def count_rows(conn, table):
    with conn.cursor() as cur:
        cur.execute(f"SELECT COUNT(*) FROM {table}")
        return cur.fetchone()[0]
