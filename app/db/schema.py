from __future__ import annotations


def ensure_schema(conn) -> None:
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS documents (
            collection text NOT NULL,
            id text NOT NULL,
            data jsonb NOT NULL DEFAULT '{}'::jsonb,
            created_at timestamptz NOT NULL DEFAULT now(),
            updated_at timestamptz NOT NULL DEFAULT now(),
            PRIMARY KEY (collection, id)
        );
        """
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS documents_collection_idx ON documents (collection);"
    )
    cur.execute(
        """
        CREATE INDEX IF NOT EXISTS documents_winners_round_idx
        ON documents (((data ->> 'round')::int))
        WHERE collection = 'winners';
        """
    )
    conn.commit()
    cur.close()
