import hashlib
import hmac
import secrets
import sqlite3
from typing import Any

from swiftpass.config import ADMIN_PASSWORD, ADMIN_USERNAME, DB_PATH
from swiftpass.errors import MalformedTime, SessionRuleError
from swiftpass.timewindow import format_hhmm, parse_hhmm, parse_weekday


PASSWORD_HASH_ALGO = "pbkdf2_sha256"
PASSWORD_HASH_ITERATIONS = 120_000
SUBJECT_ROLES = {"standard", "elevated"}


def _hash_password(password: str, *, salt: str | None = None) -> str:
    salt_value = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt_value.encode("utf-8"),
        PASSWORD_HASH_ITERATIONS,
    ).hex()
    return f"{PASSWORD_HASH_ALGO}${PASSWORD_HASH_ITERATIONS}${salt_value}${digest}"


def _verify_password(password: str, password_hash: str) -> bool:
    try:
        algo, rounds_text, salt_value, expected_digest = password_hash.split("$", 3)
        rounds = int(rounds_text)
    except (ValueError, TypeError):
        return False

    if algo != PASSWORD_HASH_ALGO or rounds <= 0:
        return False

    candidate_digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt_value.encode("utf-8"),
        rounds,
    ).hex()
    return hmac.compare_digest(candidate_digest, expected_digest)


def connect_db():
    conn = sqlite3.connect(str(DB_PATH), check_same_thread=False)
    # recommended with FK tables
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def _insert_admin(cursor: sqlite3.Cursor, username: str, password: str) -> int:
    cursor.execute(
        "INSERT INTO admin_users (username, password_hash) VALUES (?, ?)",
        (username, _hash_password(password)),
    )
    return int(cursor.lastrowid)


def _ensure_default_admin(cursor: sqlite3.Cursor) -> None:
    """Seed the configured operator account once; later edits to it are kept."""
    username = (ADMIN_USERNAME or "").strip()
    password = (ADMIN_PASSWORD or "").strip()
    if not (username and password):
        return

    existing = cursor.execute(
        "SELECT 1 FROM admin_users WHERE username = ? COLLATE NOCASE",
        (username,),
    ).fetchone()
    if existing is None:
        _insert_admin(cursor, username, password)


def create_tables():
    conn = connect_db()
    cursor = conn.cursor()

    cursor.execute("""
    CREATE TABLE IF NOT EXISTS subjects (
        id TEXT PRIMARY KEY,
        student_number TEXT UNIQUE,
        full_name TEXT NOT NULL,
        email TEXT,
        course TEXT,
        section TEXT,
        role TEXT NOT NULL DEFAULT 'standard' CHECK (role IN ('standard', 'elevated')),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """)

    cursor.execute("""
    CREATE TABLE IF NOT EXISTS courses (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        code TEXT NOT NULL UNIQUE,
        description TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """)

    # Recurring weekly lab slot
    cursor.execute("""
    CREATE TABLE IF NOT EXISTS sessions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        course_id INTEGER,
        day_of_week TEXT NOT NULL,       -- Monday..Sunday
        start_time TEXT NOT NULL,        -- HH:MM
        end_time TEXT NOT NULL,          -- HH:MM
        section TEXT,
        location TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (course_id) REFERENCES courses(id) ON DELETE SET NULL,
        CHECK (start_time < end_time)
    )
    """)

    cursor.execute("""
    CREATE TABLE IF NOT EXISTS enrollments (
        subject_id TEXT NOT NULL,
        session_id INTEGER NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (subject_id, session_id),
        FOREIGN KEY (subject_id) REFERENCES subjects(id) ON DELETE CASCADE,
        FOREIGN KEY (session_id) REFERENCES sessions(id) ON DELETE CASCADE
    )
    """)

    cursor.execute("""
    CREATE TABLE IF NOT EXISTS attendance_records (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        subject_id TEXT NOT NULL,
        session_id INTEGER NOT NULL,
        date TEXT NOT NULL,              -- YYYY-MM-DD (local)
        time_in TEXT NOT NULL,           -- ISO-8601 instant
        time_out TEXT,                   -- ISO-8601 instant, set by the close action
        status TEXT NOT NULL DEFAULT 'present',
        notes TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (subject_id) REFERENCES subjects(id) ON DELETE CASCADE,
        FOREIGN KEY (session_id) REFERENCES sessions(id) ON DELETE CASCADE
    )
    """)

    # At most one open record per subject/session/day.
    cursor.execute("""
    CREATE UNIQUE INDEX IF NOT EXISTS ux_attendance_open
    ON attendance_records (subject_id, session_id, date)
    WHERE time_out IS NULL
    """)

    # Append-only scan audit; not attendance.
    cursor.execute("""
    CREATE TABLE IF NOT EXISTS scan_events (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        subject_id TEXT,
        session_id INTEGER,
        granted INTEGER NOT NULL DEFAULT 0,
        reason_code TEXT NOT NULL,
        message TEXT,
        scanned_at TEXT NOT NULL,        -- ISO-8601 instant
        event_date TEXT NOT NULL,        -- YYYY-MM-DD
        attendance_id INTEGER,
        dispatch_status TEXT,
        source TEXT NOT NULL DEFAULT 'QrScanner',
        captured_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """)

    cursor.execute(
        """
    CREATE TABLE IF NOT EXISTS admin_users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL UNIQUE COLLATE NOCASE,
        password_hash TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """
    )

    _ensure_default_admin(cursor)

    conn.commit()
    conn.close()


# -----------------------------
# Subjects
# -----------------------------
_SUBJECT_COLUMNS = "id, student_number, full_name, email, course, section, role, created_at"


def _subject_from_row(row) -> dict[str, Any]:
    return {
        "id": row[0],
        "student_number": row[1],
        "full_name": row[2],
        "email": row[3],
        "course": row[4],
        "section": row[5],
        "role": row[6],
        "created_at": row[7],
    }


def add_subject(
    subject_id: str,
    full_name: str,
    *,
    student_number: str | None = None,
    email: str | None = None,
    course: str | None = None,
    section: str | None = None,
    role: str = "standard",
) -> str:
    if role not in SUBJECT_ROLES:
        raise ValueError(f"Unknown role: {role}")
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO subjects (id, student_number, full_name, email, course, section, role)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (subject_id, student_number, full_name, email, course, section, role),
    )
    conn.commit()
    conn.close()
    return subject_id


def get_subject_by_id(subject_id: str, *, conn: sqlite3.Connection | None = None) -> dict[str, Any] | None:
    owns_conn = conn is None
    active_conn = conn or connect_db()
    try:
        cur = active_conn.cursor()
        cur.execute(
            f"""
            SELECT {_SUBJECT_COLUMNS}
            FROM subjects
            WHERE id = ?
            """,
            (subject_id,),
        )
        row = cur.fetchone()
        return _subject_from_row(row) if row else None
    finally:
        if owns_conn:
            active_conn.close()


def get_all_subjects() -> list[dict[str, Any]]:
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(f"""
        SELECT {_SUBJECT_COLUMNS}
        FROM subjects
        ORDER BY full_name
    """)
    rows = cur.fetchall()
    conn.close()
    return [_subject_from_row(r) for r in rows]


def set_subject_role(subject_id: str, role: str) -> bool:
    if role not in SUBJECT_ROLES:
        raise ValueError(f"Unknown role: {role}")
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE subjects
        SET role = ?,
            updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
        """,
        (role, subject_id),
    )
    changed = cur.rowcount > 0
    conn.commit()
    conn.close()
    return changed


def delete_subject(subject_id: str) -> bool:
    conn = connect_db()
    cur = conn.cursor()
    cur.execute("DELETE FROM subjects WHERE id = ?", (subject_id,))
    changed = cur.rowcount > 0
    conn.commit()
    conn.close()
    return changed


# -----------------------------
# Courses
# -----------------------------
def add_course(name: str, code: str, description: str | None = None) -> int:
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO courses (name, code, description)
        VALUES (?, ?, ?)
        """,
        (name, code, description),
    )
    course_id = int(cur.lastrowid)
    conn.commit()
    conn.close()
    return course_id


def get_all_courses() -> list[dict[str, Any]]:
    conn = connect_db()
    cur = conn.cursor()
    cur.execute("""
        SELECT id, name, code, description, created_at
        FROM courses
        ORDER BY code
    """)
    rows = cur.fetchall()
    conn.close()
    return [
        {"id": r[0], "name": r[1], "code": r[2], "description": r[3], "created_at": r[4]}
        for r in rows
    ]


# -----------------------------
# Lab sessions
# -----------------------------
_SESSION_COLUMNS = "s.id, s.name, s.course_id, s.day_of_week, s.start_time, s.end_time, s.section, s.location"


def _session_from_row(row) -> dict[str, Any]:
    return {
        "id": int(row[0]),
        "name": row[1],
        "course_id": row[2],
        "day_of_week": row[3],
        "start_time": row[4],
        "end_time": row[5],
        "section": row[6],
        "location": row[7],
    }


def _normalize_session_window(day_of_week: str, start_time: str, end_time: str) -> tuple[str, str, str]:
    try:
        day = parse_weekday(day_of_week)
    except ValueError as exc:
        raise SessionRuleError(str(exc))
    try:
        start = parse_hhmm(start_time)
        end = parse_hhmm(end_time)
    except MalformedTime as exc:
        raise SessionRuleError(str(exc))
    if start >= end:
        raise SessionRuleError("Session start time must be before its end time.")
    return day.value, format_hhmm(start), format_hhmm(end)


def add_session(
    name: str,
    day_of_week: str,
    start_time: str,
    end_time: str,
    *,
    course_id: int | None = None,
    section: str | None = None,
    location: str | None = None,
) -> int:
    day, start, end = _normalize_session_window(day_of_week, start_time, end_time)
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO sessions (name, course_id, day_of_week, start_time, end_time, section, location)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (name, course_id, day, start, end, section, location),
    )
    session_id = int(cur.lastrowid)
    conn.commit()
    conn.close()
    return session_id


def get_session_by_id(session_id: int, *, conn: sqlite3.Connection | None = None) -> dict[str, Any] | None:
    owns_conn = conn is None
    active_conn = conn or connect_db()
    try:
        cur = active_conn.cursor()
        cur.execute(
            f"""
            SELECT {_SESSION_COLUMNS}
            FROM sessions s
            WHERE s.id = ?
            """,
            (session_id,),
        )
        row = cur.fetchone()
        return _session_from_row(row) if row else None
    finally:
        if owns_conn:
            active_conn.close()


def get_all_sessions(day_of_week: str | None = None) -> list[dict[str, Any]]:
    conn = connect_db()
    cur = conn.cursor()
    where = ["1=1"]
    params: list[Any] = []
    if day_of_week:
        where.append("s.day_of_week = ?")
        params.append(parse_weekday(day_of_week).value)
    cur.execute(
        f"""
        SELECT {_SESSION_COLUMNS}
        FROM sessions s
        WHERE {" AND ".join(where)}
        ORDER BY s.day_of_week, s.start_time, s.id
        """,
        params,
    )
    rows = cur.fetchall()
    conn.close()
    return [_session_from_row(r) for r in rows]


def delete_session(session_id: int) -> bool:
    conn = connect_db()
    cur = conn.cursor()
    cur.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
    changed = cur.rowcount > 0
    conn.commit()
    conn.close()
    return changed


# -----------------------------
# Enrollments
# -----------------------------
def enroll_subject(subject_id: str, session_id: int) -> None:
    conn = connect_db()
    try:
        subject = get_subject_by_id(subject_id, conn=conn)
        session = get_session_by_id(session_id, conn=conn)
        if not subject or not session:
            raise LookupError("Subject or session not found.")
        if session["section"] and subject["section"] and session["section"] != subject["section"]:
            raise SessionRuleError(
                f"Session is restricted to section {session['section']}."
            )
        conn.execute(
            """
            INSERT INTO enrollments (subject_id, session_id)
            VALUES (?, ?)
            """,
            (subject_id, session_id),
        )
        conn.commit()
    finally:
        conn.close()


def unenroll_subject(subject_id: str, session_id: int) -> bool:
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        """
        DELETE FROM enrollments
        WHERE subject_id = ? AND session_id = ?
        """,
        (subject_id, session_id),
    )
    changed = cur.rowcount > 0
    conn.commit()
    conn.close()
    return changed


def get_enrolled_sessions(subject_id: str, *, conn: sqlite3.Connection | None = None) -> list[dict[str, Any]]:
    owns_conn = conn is None
    active_conn = conn or connect_db()
    try:
        cur = active_conn.cursor()
        cur.execute(
            f"""
            SELECT {_SESSION_COLUMNS}
            FROM enrollments e
            JOIN sessions s ON s.id = e.session_id
            WHERE e.subject_id = ?
            ORDER BY s.id ASC
            """,
            (subject_id,),
        )
        return [_session_from_row(r) for r in cur.fetchall()]
    finally:
        if owns_conn:
            active_conn.close()


# -----------------------------
# Attendance records
# -----------------------------
def find_open_attendance(
    subject_id: str,
    session_id: int,
    date: str,
    *,
    conn: sqlite3.Connection | None = None,
) -> dict[str, Any] | None:
    owns_conn = conn is None
    active_conn = conn or connect_db()
    try:
        cur = active_conn.cursor()
        cur.execute(
            """
            SELECT id, time_in
            FROM attendance_records
            WHERE subject_id = ?
              AND session_id = ?
              AND date = ?
              AND time_out IS NULL
            LIMIT 1
            """,
            (subject_id, session_id, date),
        )
        row = cur.fetchone()
        if not row:
            return None
        return {"id": int(row[0]), "time_in": row[1]}
    finally:
        if owns_conn:
            active_conn.close()


def insert_attendance_record(
    subject_id: str,
    session_id: int,
    date: str,
    time_in: str,
    *,
    status: str = "present",
    conn: sqlite3.Connection | None = None,
) -> int:
    """
    Single-row insert. Raises sqlite3.IntegrityError when an open record for
    (subject, session, date) already exists.
    """
    owns_conn = conn is None
    active_conn = conn or connect_db()
    try:
        cur = active_conn.cursor()
        cur.execute(
            """
            INSERT INTO attendance_records (subject_id, session_id, date, time_in, status)
            VALUES (?, ?, ?, ?, ?)
            """,
            (subject_id, session_id, date, time_in, status),
        )
        record_id = int(cur.lastrowid)
        if owns_conn:
            active_conn.commit()
        return record_id
    finally:
        if owns_conn:
            active_conn.close()


def close_attendance_record(record_id: int, time_out: str) -> bool:
    """Set time_out on an open record. Returns False if missing or already closed."""
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE attendance_records
        SET time_out = ?,
            updated_at = CURRENT_TIMESTAMP
        WHERE id = ? AND time_out IS NULL
        """,
        (time_out, record_id),
    )
    changed = cur.rowcount > 0
    conn.commit()
    conn.close()
    return changed


def get_attendance_records(
    date: str | None = None,
    *,
    session_id: int | None = None,
    subject_id: str | None = None,
) -> list[dict[str, Any]]:
    where = ["1=1"]
    params: list[Any] = []
    if date:
        where.append("ar.date = ?")
        params.append(date)
    if session_id is not None:
        where.append("ar.session_id = ?")
        params.append(session_id)
    if subject_id:
        where.append("ar.subject_id = ?")
        params.append(subject_id)

    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT
            ar.id,
            ar.subject_id,
            sub.full_name,
            ar.session_id,
            s.name,
            ar.date,
            ar.time_in,
            ar.time_out,
            ar.status
        FROM attendance_records ar
        JOIN subjects sub ON sub.id = ar.subject_id
        JOIN sessions s ON s.id = ar.session_id
        WHERE {" AND ".join(where)}
        ORDER BY ar.date DESC, ar.time_in ASC
        """,
        params,
    )
    rows = cur.fetchall()
    conn.close()
    return [
        {
            "id": int(r[0]),
            "subject_id": r[1],
            "full_name": r[2],
            "session_id": int(r[3]),
            "session_name": r[4],
            "date": r[5],
            "time_in": r[6],
            "time_out": r[7],
            "status": r[8],
        }
        for r in rows
    ]


def get_daily_summary(date: str) -> dict[str, int]:
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT
            COUNT(1) AS total,
            SUM(CASE WHEN time_out IS NULL THEN 1 ELSE 0 END) AS open,
            COUNT(DISTINCT subject_id) AS subjects
        FROM attendance_records
        WHERE date = ?
        """,
        (date,),
    )
    row = cur.fetchone()
    conn.close()
    total = int(row[0] or 0) if row else 0
    still_open = int(row[1] or 0) if row else 0
    subjects = int(row[2] or 0) if row else 0
    return {
        "total": total,
        "open": still_open,
        "closed": total - still_open,
        "subjects": subjects,
    }


def delete_attendance_record(record_id: int) -> bool:
    conn = connect_db()
    cur = conn.cursor()
    cur.execute("DELETE FROM attendance_records WHERE id = ?", (record_id,))
    changed = cur.rowcount > 0
    conn.commit()
    conn.close()
    return changed


def clear_attendance() -> None:
    conn = connect_db()
    cur = conn.cursor()
    cur.execute("DELETE FROM scan_events;")
    cur.execute("DELETE FROM attendance_records;")
    cur.execute("DELETE FROM sqlite_sequence WHERE name='scan_events';")
    cur.execute("DELETE FROM sqlite_sequence WHERE name='attendance_records';")
    conn.commit()
    conn.close()


# -----------------------------
# Scan audit events
# -----------------------------
def insert_scan_event(
    *,
    reason_code: str,
    granted: bool,
    scanned_at: str,
    event_date: str,
    message: str | None = None,
    subject_id: str | None = None,
    session_id: int | None = None,
    attendance_id: int | None = None,
    source: str = "QrScanner",
    conn: sqlite3.Connection | None = None,
) -> int:
    owns_conn = conn is None
    active_conn = conn or connect_db()
    try:
        cur = active_conn.cursor()
        cur.execute(
            """
            INSERT INTO scan_events (
                subject_id,
                session_id,
                granted,
                reason_code,
                message,
                scanned_at,
                event_date,
                attendance_id,
                source
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                subject_id,
                session_id,
                1 if granted else 0,
                reason_code,
                message,
                scanned_at,
                event_date,
                attendance_id,
                source,
            ),
        )
        event_id = int(cur.lastrowid)
        if owns_conn:
            active_conn.commit()
        return event_id
    finally:
        if owns_conn:
            active_conn.close()


def set_scan_event_dispatch_status(event_id: int, dispatch_status: str) -> None:
    conn = connect_db()
    conn.execute(
        """
        UPDATE scan_events
        SET dispatch_status = ?
        WHERE id = ?
        """,
        (dispatch_status, event_id),
    )
    conn.commit()
    conn.close()


def get_scan_events(
    *,
    subject_id: str | None = None,
    date: str | None = None,
    reason_code: str | None = None,
    granted: bool | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[dict[str, Any]]:
    """
    Admin query contract for scan audit history.
    """
    where_sql, params = _build_scan_events_where_clause(
        subject_id=subject_id,
        date=date,
        reason_code=reason_code,
        granted=granted,
    )

    conn = connect_db()
    cur = conn.cursor()

    safe_limit = max(1, min(int(limit), 500))
    safe_offset = max(0, int(offset))

    query = f"""
        SELECT
            se.id,
            se.subject_id,
            sub.full_name,
            se.session_id,
            se.granted,
            se.reason_code,
            se.message,
            se.scanned_at,
            se.event_date,
            se.attendance_id,
            se.dispatch_status,
            se.source
        FROM scan_events se
        LEFT JOIN subjects sub ON sub.id = se.subject_id
        WHERE {where_sql}
        ORDER BY se.id DESC
        LIMIT ?
        OFFSET ?
    """
    params.extend([safe_limit, safe_offset])

    cur.execute(query, params)
    rows = cur.fetchall()
    conn.close()

    return [
        {
            "id": row[0],
            "subject_id": row[1],
            "full_name": row[2],
            "session_id": row[3],
            "granted": bool(row[4]),
            "reason_code": row[5],
            "message": row[6],
            "scanned_at": row[7],
            "event_date": row[8],
            "attendance_id": row[9],
            "dispatch_status": row[10],
            "source": row[11],
        }
        for row in rows
    ]


def get_scan_events_total(
    *,
    subject_id: str | None = None,
    date: str | None = None,
    reason_code: str | None = None,
    granted: bool | None = None,
) -> int:
    where_sql, params = _build_scan_events_where_clause(
        subject_id=subject_id,
        date=date,
        reason_code=reason_code,
        granted=granted,
    )

    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT COUNT(1)
        FROM scan_events se
        WHERE {where_sql}
        """,
        params,
    )
    row = cur.fetchone()
    conn.close()
    return int(row[0] or 0) if row else 0


def _build_scan_events_where_clause(
    *,
    subject_id: str | None = None,
    date: str | None = None,
    reason_code: str | None = None,
    granted: bool | None = None,
) -> tuple[str, list[Any]]:
    where = ["1=1"]
    params: list[Any] = []

    if subject_id is not None:
        where.append("se.subject_id = ?")
        params.append(subject_id)
    if date is not None:
        where.append("se.event_date = ?")
        params.append(date)
    if reason_code is not None:
        where.append("se.reason_code = ?")
        params.append(reason_code)
    if granted is not None:
        where.append("se.granted = ?")
        params.append(1 if granted else 0)

    return " AND ".join(where), params


# -----------------------------
# Admin users
# -----------------------------
def create_admin_user(username: str, password: str) -> dict:
    """
    Add an operator account. Raises ValueError on blank input and
    sqlite3.IntegrityError when the name is taken (case-insensitive).
    """
    name, secret = username.strip(), password.strip()
    if not (name and secret):
        raise ValueError("Username and password are required.")

    conn = connect_db()
    try:
        admin_id = _insert_admin(conn.cursor(), name, secret)
        conn.commit()
    finally:
        conn.close()
    return {"id": admin_id, "username": name}


def get_admin_users() -> list[dict]:
    conn = connect_db()
    rows = conn.execute(
        "SELECT id, username, created_at FROM admin_users ORDER BY username COLLATE NOCASE"
    ).fetchall()
    conn.close()
    return [{"id": r[0], "username": r[1], "created_at": r[2]} for r in rows]


def verify_admin_credentials(username: str, password: str) -> dict | None:
    clean_username = username.strip()
    clean_password = password.strip()
    if not clean_username or not clean_password:
        return None

    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, username, password_hash
        FROM admin_users
        WHERE username = ? COLLATE NOCASE
        """,
        (clean_username,),
    )
    row = cur.fetchone()
    conn.close()

    if not row:
        return None

    admin_id, saved_username, password_hash = row
    if not _verify_password(clean_password, password_hash):
        return None

    return {"id": admin_id, "username": saved_username}
