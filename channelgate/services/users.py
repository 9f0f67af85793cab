ADMIN_ROLES = ("ADMIN", "MODERATOR")


def _row_to_user(row):
    if row is None:
        return None
    user = dict(row)
    user["is_active"] = bool(user["is_active"])
    return user


def get_user(conn, user_id):
    row = conn.execute(
        "SELECT id, email, username, role, is_active FROM users WHERE id = ?",
        (user_id,),
    ).fetchone()
    return _row_to_user(row)


def find_user_by_email(conn, email):
    row = conn.execute(
        """
        SELECT id, email, username, role, is_active, password_hash
        FROM users WHERE email = ?
        """,
        ((email or "").strip().lower(),),
    ).fetchone()
    return _row_to_user(row)


def find_active_admin(conn, email=None):
    """Active ADMIN/MODERATOR by email, or the oldest active ADMIN."""
    if email:
        row = conn.execute(
            """
            SELECT id, email, username, role, is_active FROM users
            WHERE email = ? AND is_active = 1 AND role IN (?, ?)
            """,
            (email.strip().lower(), *ADMIN_ROLES),
        ).fetchone()
    else:
        row = conn.execute(
            """
            SELECT id, email, username, role, is_active FROM users
            WHERE role = 'ADMIN' AND is_active = 1
            ORDER BY created_at ASC, id ASC
            LIMIT 1
            """
        ).fetchone()
    return _row_to_user(row)


def is_admin_role(role):
    return role in ADMIN_ROLES
