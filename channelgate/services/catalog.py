from ..db import to_ts

CHANNEL_COLUMNS = (
    "c.id, c.name, c.stream_url, c.logo, c.category, c.country, c.language, "
    "c.epg_id, c.sort_order"
)

# SQLite caps bound parameters per statement
CHUNK_SIZE = 900


def get_accessible_channels(conn, access):
    """Active + live channels visible to an authorization class.

    A subscriber only ever sees channels granted to their plan; a plan with
    no grants sees nothing.
    """
    if access.is_denied:
        return []

    if access.is_admin:
        rows = conn.execute(
            f"""
            SELECT {CHANNEL_COLUMNS}
            FROM channels c
            WHERE c.is_active = 1 AND c.is_live = 1
            ORDER BY c.sort_order ASC, c.name ASC
            """
        ).fetchall()
        return [dict(row) for row in rows]

    rows = conn.execute(
        f"""
        SELECT {CHANNEL_COLUMNS}
        FROM channel_access ca
        JOIN channels c ON c.id = ca.channel_id
        WHERE ca.plan_id = ? AND c.is_active = 1 AND c.is_live = 1
        ORDER BY c.sort_order ASC, c.name ASC
        """,
        (access.plan_id,),
    ).fetchall()
    return [dict(row) for row in rows]


def fetch_epg_entries(conn, channel_ids, start, end):
    """Programmes overlapping [start, end); touching the edges does not count."""
    if not channel_ids:
        return []

    start_ts = to_ts(start)
    end_ts = to_ts(end)
    entries = []
    id_list = list(channel_ids)
    for i in range(0, len(id_list), CHUNK_SIZE):
        chunk = id_list[i:i + CHUNK_SIZE]
        placeholders = ",".join(["?"] * len(chunk))
        rows = conn.execute(
            f"""
            SELECT
                e.channel_id, e.start_ts, e.stop_ts, e.title, e.description,
                e.category, e.image,
                c.name AS channel_name, c.logo AS channel_logo, c.epg_id AS channel_epg_id
            FROM epg_entries e
            LEFT JOIN channels c ON c.id = e.channel_id
            WHERE e.channel_id IN ({placeholders})
              AND e.start_ts < ?
              AND e.stop_ts > ?
            """,
            [*chunk, end_ts, start_ts],
        ).fetchall()
        entries.extend(dict(row) for row in rows)

    entries.sort(key=lambda e: (e["channel_id"], e["start_ts"]))
    return entries
