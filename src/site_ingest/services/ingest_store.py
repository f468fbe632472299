"""SQLite-backed store for domains, URLs, crawl runs, crawls and their artifacts."""

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from ..core.config import settings
from ..core.exceptions import IngestError, InvalidTransitionError, NotFoundError
from ..core.logging import logger
from ..models.records import (
    CrawlRun,
    CrawlStatus,
    CrawlTask,
    CrawlTechnology,
    Domain,
    Screenshot,
    ScreenshotKind,
    SectionScreenshot,
    TaskType,
    Technology,
    Url,
    UrlCrawl,
    UrlType,
)
from ..pipeline.state import CRAWL, CRAWL_RUN, TASK, TERMINAL_CRAWL_STATUSES, check_transition
from ..utils.concurrency import clamp_int

_CRAWL_FIELDS = (
    "http_status", "title", "content_hash", "final_url", "error",
    "started_at", "finished_at", "crawled_at",
)


def utc_now() -> str:
    """Current UTC time as a sortable ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _new_id() -> str:
    return str(uuid.uuid4())


class IngestStore:
    """
    SQLite-based durable store for the ingestion pipeline.

    Each call opens its own short-lived connection; operations that replace
    several rows at once (sections, crawl technologies, crawl creation) run
    inside a single transaction so readers never observe a partial set.
    """

    def __init__(self, db_path: Optional[str] = None):
        """Initialize the store and create the schema if needed."""
        self.db_path = db_path or settings.DATABASE_PATH
        self._ensure_db_directory()
        self._init_database()
        logger.info(f"IngestStore initialized with database at {self.db_path}")

    def _ensure_db_directory(self):
        """Ensure the database directory exists."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection whose work is committed on success and rolled back on error."""
        conn = self._get_connection()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_database(self):
        """Initialize the database schema."""
        with self._transaction() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS domains (
                    id TEXT PRIMARY KEY,
                    host TEXT NOT NULL UNIQUE,
                    canonical_url TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS urls (
                    id TEXT PRIMARY KEY,
                    domain_id TEXT NOT NULL,
                    path TEXT NOT NULL,
                    normalized_url TEXT NOT NULL UNIQUE,
                    type TEXT NOT NULL DEFAULT 'OTHER',
                    is_canonical INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    FOREIGN KEY (domain_id) REFERENCES domains(id) ON DELETE CASCADE
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS crawl_runs (
                    id TEXT PRIMARY KEY,
                    domain_id TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'PENDING',
                    job_id TEXT,
                    options_json TEXT,
                    error TEXT,
                    started_at TEXT,
                    finished_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    FOREIGN KEY (domain_id) REFERENCES domains(id) ON DELETE CASCADE
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS url_crawls (
                    id TEXT PRIMARY KEY,
                    url_id TEXT NOT NULL,
                    crawl_run_id TEXT,
                    status TEXT NOT NULL DEFAULT 'PENDING',
                    http_status INTEGER,
                    title TEXT,
                    content_hash TEXT,
                    final_url TEXT,
                    error TEXT,
                    started_at TEXT,
                    finished_at TEXT,
                    crawled_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    FOREIGN KEY (url_id) REFERENCES urls(id) ON DELETE CASCADE,
                    FOREIGN KEY (crawl_run_id) REFERENCES crawl_runs(id) ON DELETE SET NULL,
                    UNIQUE(crawl_run_id, url_id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS crawl_tasks (
                    id TEXT PRIMARY KEY,
                    crawl_id TEXT NOT NULL,
                    type TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'PENDING',
                    attempts INTEGER NOT NULL DEFAULT 0,
                    last_attempt_at TEXT,
                    started_at TEXT,
                    finished_at TEXT,
                    error TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    FOREIGN KEY (crawl_id) REFERENCES url_crawls(id) ON DELETE CASCADE,
                    UNIQUE(crawl_id, type)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS screenshots (
                    id TEXT PRIMARY KEY,
                    crawl_id TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    width INTEGER,
                    height INTEGER,
                    format TEXT NOT NULL,
                    storage_key TEXT NOT NULL,
                    public_url TEXT NOT NULL,
                    prominent_color TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (crawl_id) REFERENCES url_crawls(id) ON DELETE CASCADE
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS section_screenshots (
                    id TEXT PRIMARY KEY,
                    crawl_id TEXT NOT NULL,
                    idx INTEGER NOT NULL,
                    clip_json TEXT,
                    element_json TEXT,
                    format TEXT NOT NULL,
                    storage_key TEXT NOT NULL,
                    public_url TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (crawl_id) REFERENCES url_crawls(id) ON DELETE CASCADE
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS technologies (
                    id TEXT PRIMARY KEY,
                    slug TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    website_url TEXT
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS crawl_technologies (
                    crawl_id TEXT NOT NULL,
                    technology_id TEXT NOT NULL,
                    confidence REAL,
                    PRIMARY KEY (crawl_id, technology_id),
                    FOREIGN KEY (crawl_id) REFERENCES url_crawls(id) ON DELETE CASCADE,
                    FOREIGN KEY (technology_id) REFERENCES technologies(id) ON DELETE CASCADE
                )
            """)

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_urls_domain_id ON urls(domain_id)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_crawl_runs_domain_id ON crawl_runs(domain_id, created_at)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_url_crawls_run_id ON url_crawls(crawl_run_id)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_crawl_tasks_crawl_id ON crawl_tasks(crawl_id)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_screenshots_crawl_id ON screenshots(crawl_id)")

        logger.info("Database schema initialized")

    # ==================== Domains ====================

    def create_domain(self, host: str, canonical_url: str) -> Tuple[Domain, bool]:
        """
        Create a domain, or return the existing one with the same host.

        Returns:
            Tuple of (domain, created)
        """
        now = utc_now()
        with self._transaction() as conn:
            cursor = conn.execute("""
                INSERT OR IGNORE INTO domains (id, host, canonical_url, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
            """, (_new_id(), host, canonical_url, now, now))
            created = cursor.rowcount == 1

        domain = self.get_domain_by_host(host)
        if created:
            logger.info(f"Created domain: {domain.id} - {host}")
        return domain, created

    def get_domain(self, domain_id: str) -> Optional[Domain]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM domains WHERE id = ?", (domain_id,)).fetchone()
        return Domain(**dict(row)) if row else None

    def get_domain_by_host(self, host: str) -> Optional[Domain]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM domains WHERE host = ?", (host,)).fetchone()
        return Domain(**dict(row)) if row else None

    def require_domain(self, domain_id: str) -> Domain:
        """Get a domain or raise NotFoundError."""
        domain = self.get_domain(domain_id)
        if domain is None:
            raise NotFoundError("Domain", domain_id)
        return domain

    def list_domains(self, limit: int = 100, offset: int = 0) -> List[Domain]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM domains ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
                (limit, offset)
            ).fetchall()
        return [Domain(**dict(row)) for row in rows]

    # ==================== URLs ====================

    @staticmethod
    def _row_to_url(row: sqlite3.Row) -> Url:
        data = dict(row)
        data["is_canonical"] = bool(data["is_canonical"])
        return Url(**data)

    def upsert_url(
        self,
        domain_id: str,
        path: str,
        normalized_url: str,
        url_type: Optional[UrlType] = None,
        is_canonical: Optional[bool] = None,
    ) -> Url:
        """
        Create a URL keyed by its normalized address, or update the type and
        canonical flag of the existing row. Omitted fields are left unchanged
        on update and default to OTHER / non-canonical on insert.
        """
        now = utc_now()
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT id FROM urls WHERE normalized_url = ?", (normalized_url,)
            ).fetchone()

            if row is None:
                url_id = _new_id()
                conn.execute("""
                    INSERT INTO urls (id, domain_id, path, normalized_url, type, is_canonical,
                                      created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    url_id, domain_id, path, normalized_url,
                    (url_type or UrlType.OTHER).value, int(bool(is_canonical)), now, now
                ))
            else:
                url_id = row["id"]
                updates = ["updated_at = ?"]
                params: List[Any] = [now]
                if url_type is not None:
                    updates.append("type = ?")
                    params.append(url_type.value)
                if is_canonical is not None:
                    updates.append("is_canonical = ?")
                    params.append(int(is_canonical))
                params.append(url_id)
                conn.execute(f"UPDATE urls SET {', '.join(updates)} WHERE id = ?", params)

            row = conn.execute("SELECT * FROM urls WHERE id = ?", (url_id,)).fetchone()
        return self._row_to_url(row)

    def get_url(self, url_id: str) -> Optional[Url]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM urls WHERE id = ?", (url_id,)).fetchone()
        return self._row_to_url(row) if row else None

    def list_urls_for_domain(
        self,
        domain_id: str,
        url_type: Optional[UrlType] = None,
        limit: Optional[int] = None,
    ) -> List[Url]:
        """List a domain's URLs ordered by type, then creation time."""
        query = "SELECT * FROM urls WHERE domain_id = ?"
        params: List[Any] = [domain_id]

        if url_type:
            query += " AND type = ?"
            params.append(url_type.value)

        query += " ORDER BY type ASC, created_at ASC, rowid ASC"
        if limit:
            query += " LIMIT ?"
            params.append(clamp_int(limit, 1, 200, 50))

        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_url(row) for row in rows]

    # ==================== Crawl runs ====================

    def create_crawl_run(self, domain_id: str, options_json: Optional[str] = None) -> CrawlRun:
        run_id = _new_id()
        now = utc_now()
        with self._transaction() as conn:
            conn.execute("""
                INSERT INTO crawl_runs (id, domain_id, status, options_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (run_id, domain_id, CrawlStatus.PENDING.value, options_json, now, now))

        logger.info(f"Created crawl run: {run_id} for domain {domain_id}")
        return self.get_crawl_run(run_id)

    def get_crawl_run(self, run_id: str) -> Optional[CrawlRun]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM crawl_runs WHERE id = ?", (run_id,)).fetchone()
        return CrawlRun(**dict(row)) if row else None

    def set_crawl_run_job(self, run_id: str, job_id: str) -> CrawlRun:
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE crawl_runs SET job_id = ?, updated_at = ? WHERE id = ?",
                (job_id, utc_now(), run_id)
            )
            if cursor.rowcount == 0:
                raise NotFoundError("CrawlRun", run_id)
        return self.get_crawl_run(run_id)

    def transition_crawl_run(
        self,
        run_id: str,
        status: CrawlStatus,
        error: Optional[str] = None,
    ) -> CrawlRun:
        """
        Move a crawl run to ``status``.

        Entering RUNNING stamps ``started_at``; entering a terminal status
        stamps ``finished_at``. ``error`` replaces the stored error, so passing
        None clears it.

        Raises:
            NotFoundError: If the run does not exist
            InvalidTransitionError: If the change is not allowed
        """
        now = utc_now()
        with self._transaction() as conn:
            row = conn.execute("SELECT status FROM crawl_runs WHERE id = ?", (run_id,)).fetchone()
            if row is None:
                raise NotFoundError("CrawlRun", run_id)
            check_transition(CRAWL_RUN, row["status"], status)

            updates = ["status = ?", "error = ?", "updated_at = ?"]
            params: List[Any] = [status.value, error, now]
            if status == CrawlStatus.RUNNING:
                updates.append("started_at = ?")
                params.append(now)
            if status.value in TERMINAL_CRAWL_STATUSES:
                updates.append("finished_at = ?")
                params.append(now)
            params.append(run_id)
            conn.execute(f"UPDATE crawl_runs SET {', '.join(updates)} WHERE id = ?", params)

        return self.get_crawl_run(run_id)

    def list_crawl_runs_for_domain(
        self,
        domain_id: str,
        limit: int = 50,
        status: Optional[CrawlStatus] = None,
    ) -> List[CrawlRun]:
        """List a domain's crawl runs, newest first."""
        query = "SELECT * FROM crawl_runs WHERE domain_id = ?"
        params: List[Any] = [domain_id]

        if status:
            query += " AND status = ?"
            params.append(status.value)

        query += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
        params.append(limit)

        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [CrawlRun(**dict(row)) for row in rows]

    # ==================== Crawls & tasks ====================

    def create_crawl(
        self,
        url_id: str,
        tasks: Sequence[TaskType],
        crawl_run_id: Optional[str] = None,
    ) -> UrlCrawl:
        """
        Create a PENDING crawl together with one PENDING task per distinct type.

        Raises:
            NotFoundError: If the URL does not exist
            IngestError: 409 if the run already has a crawl for this URL
        """
        crawl_id = _new_id()
        now = utc_now()
        with self._transaction() as conn:
            if conn.execute("SELECT 1 FROM urls WHERE id = ?", (url_id,)).fetchone() is None:
                raise NotFoundError("Url", url_id)
            try:
                conn.execute("""
                    INSERT INTO url_crawls (id, url_id, crawl_run_id, status, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (crawl_id, url_id, crawl_run_id, CrawlStatus.PENDING.value, now, now))
            except sqlite3.IntegrityError as e:
                if "UNIQUE" not in str(e):
                    raise
                raise IngestError(
                    f"Crawl run {crawl_run_id} already has a crawl for URL {url_id}",
                    status_code=409,
                    details={"crawl_run_id": crawl_run_id, "url_id": url_id}
                ) from e

            for task_type in dict.fromkeys(tasks):
                conn.execute("""
                    INSERT INTO crawl_tasks (id, crawl_id, type, status, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (_new_id(), crawl_id, task_type.value, CrawlStatus.PENDING.value, now, now))

        return self.get_crawl(crawl_id)

    def patch_crawl(self, crawl_id: str, status: Optional[CrawlStatus] = None, **fields: Any) -> UrlCrawl:
        """
        Update a crawl's status and/or descriptive fields.

        Entering RUNNING stamps ``started_at`` and a terminal status stamps
        ``finished_at`` unless the caller supplies them.

        Raises:
            NotFoundError: If the crawl does not exist
            InvalidTransitionError: If the status change is not allowed
            ValueError: If an unknown field is passed
        """
        unknown = set(fields) - set(_CRAWL_FIELDS)
        if unknown:
            raise ValueError(f"Unknown crawl fields: {', '.join(sorted(unknown))}")

        now = utc_now()
        with self._transaction() as conn:
            row = conn.execute("SELECT status FROM url_crawls WHERE id = ?", (crawl_id,)).fetchone()
            if row is None:
                raise NotFoundError("UrlCrawl", crawl_id)

            if status is not None:
                check_transition(CRAWL, row["status"], status)
                fields["status"] = status.value
                if status == CrawlStatus.RUNNING:
                    fields.setdefault("started_at", now)
                if status.value in TERMINAL_CRAWL_STATUSES:
                    fields.setdefault("finished_at", now)

            fields["updated_at"] = now
            assignments = ", ".join(f"{name} = ?" for name in fields)
            conn.execute(
                f"UPDATE url_crawls SET {assignments} WHERE id = ?",
                [*fields.values(), crawl_id]
            )

        return self.get_crawl(crawl_id)

    def patch_task(
        self,
        crawl_id: str,
        task_type: TaskType,
        status: CrawlStatus,
        error: Optional[str] = None,
    ) -> CrawlTask:
        """
        Move one of a crawl's tasks to ``status``.

        RUNNING increments ``attempts`` and stamps ``started_at`` and
        ``last_attempt_at``; SUCCESS/FAILED stamp ``finished_at`` and store
        ``error`` (cleared on success).

        Raises:
            NotFoundError: If the crawl has no task of this type
            InvalidTransitionError: If the change is not allowed, or the task
                would finish while its crawl is still PENDING
        """
        now = utc_now()
        with self._transaction() as conn:
            row = conn.execute("""
                SELECT t.id, t.status, c.status AS crawl_status
                FROM crawl_tasks t JOIN url_crawls c ON c.id = t.crawl_id
                WHERE t.crawl_id = ? AND t.type = ?
            """, (crawl_id, task_type.value)).fetchone()
            if row is None:
                raise NotFoundError(f"{task_type.value} task", crawl_id)

            check_transition(TASK, row["status"], status)
            terminal = status.value in TERMINAL_CRAWL_STATUSES
            if terminal and row["crawl_status"] == CrawlStatus.PENDING.value:
                raise InvalidTransitionError(
                    TASK, row["status"], status.value, "crawl has not started"
                )

            if status == CrawlStatus.RUNNING:
                conn.execute("""
                    UPDATE crawl_tasks
                    SET status = ?, attempts = attempts + 1, started_at = ?, last_attempt_at = ?,
                        finished_at = NULL, error = NULL, updated_at = ?
                    WHERE id = ?
                """, (status.value, now, now, now, row["id"]))
            else:
                conn.execute("""
                    UPDATE crawl_tasks
                    SET status = ?, finished_at = ?, error = ?, updated_at = ?
                    WHERE id = ?
                """, (
                    status.value,
                    now if terminal else None,
                    error if status == CrawlStatus.FAILED else None,
                    now,
                    row["id"],
                ))

            task = conn.execute("SELECT * FROM crawl_tasks WHERE id = ?", (row["id"],)).fetchone()
        return CrawlTask(**dict(task))

    def get_crawl(self, crawl_id: str) -> Optional[UrlCrawl]:
        """Get a crawl with its tasks, screenshots, sections and technologies."""
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM url_crawls WHERE id = ?", (crawl_id,)).fetchone()
            if not row:
                return None

            crawl = UrlCrawl(**dict(row))

            crawl.tasks = [
                CrawlTask(**dict(r)) for r in conn.execute(
                    "SELECT * FROM crawl_tasks WHERE crawl_id = ? ORDER BY rowid", (crawl_id,)
                ).fetchall()
            ]
            crawl.screenshots = [
                Screenshot(**dict(r)) for r in conn.execute(
                    "SELECT * FROM screenshots WHERE crawl_id = ? ORDER BY created_at", (crawl_id,)
                ).fetchall()
            ]
            crawl.sections = [
                self._row_to_section(r) for r in conn.execute(
                    "SELECT * FROM section_screenshots WHERE crawl_id = ? ORDER BY idx", (crawl_id,)
                ).fetchall()
            ]
            crawl.technologies = [
                CrawlTechnology(
                    technology=Technology(
                        id=r["id"], slug=r["slug"], name=r["name"], website_url=r["website_url"]
                    ),
                    confidence=r["confidence"],
                )
                for r in conn.execute("""
                    SELECT t.*, ct.confidence
                    FROM crawl_technologies ct JOIN technologies t ON t.id = ct.technology_id
                    WHERE ct.crawl_id = ?
                    ORDER BY t.slug
                """, (crawl_id,)).fetchall()
            ]
        return crawl

    def list_crawls_for_run(self, crawl_run_id: str) -> List[UrlCrawl]:
        """List a run's crawls in creation order."""
        with self._transaction() as conn:
            ids = [
                row["id"] for row in conn.execute(
                    "SELECT id FROM url_crawls WHERE crawl_run_id = ? ORDER BY created_at, rowid",
                    (crawl_run_id,)
                ).fetchall()
            ]
        return [self.get_crawl(crawl_id) for crawl_id in ids]

    def list_crawls_for_url(self, url_id: str, limit: int = 50) -> List[UrlCrawl]:
        """List a URL's crawls, newest first."""
        with self._transaction() as conn:
            ids = [
                row["id"] for row in conn.execute(
                    "SELECT id FROM url_crawls WHERE url_id = ? ORDER BY created_at DESC, rowid DESC LIMIT ?",
                    (url_id, limit)
                ).fetchall()
            ]
        return [self.get_crawl(crawl_id) for crawl_id in ids]

    # ==================== Artifacts ====================

    def add_screenshot(
        self,
        crawl_id: str,
        format: str,
        storage_key: str,
        public_url: str,
        kind: ScreenshotKind = ScreenshotKind.FULL_PAGE,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> Screenshot:
        screenshot_id = _new_id()
        with self._transaction() as conn:
            conn.execute("""
                INSERT INTO screenshots (id, crawl_id, kind, width, height, format,
                                         storage_key, public_url, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                screenshot_id, crawl_id, kind.value, width, height, format,
                storage_key, public_url, utc_now()
            ))
            row = conn.execute("SELECT * FROM screenshots WHERE id = ?", (screenshot_id,)).fetchone()
        return Screenshot(**dict(row))

    def set_screenshot_color(self, screenshot_id: str, prominent_color: Optional[str]) -> None:
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE screenshots SET prominent_color = ? WHERE id = ?",
                (prominent_color, screenshot_id)
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Screenshot", screenshot_id)

    @staticmethod
    def _row_to_section(row: sqlite3.Row) -> SectionScreenshot:
        data = dict(row)
        data["index"] = data.pop("idx")
        return SectionScreenshot(**data)

    def set_sections(self, crawl_id: str, items: Iterable[Dict[str, Any]]) -> int:
        """
        Replace a crawl's section screenshots in one transaction.

        Args:
            crawl_id: Owning crawl
            items: Dicts with index, format, storage_key, public_url and
                optional clip_json / element_json

        Returns:
            Number of sections stored
        """
        now = utc_now()
        count = 0
        with self._transaction() as conn:
            conn.execute("DELETE FROM section_screenshots WHERE crawl_id = ?", (crawl_id,))
            for item in items:
                conn.execute("""
                    INSERT INTO section_screenshots (id, crawl_id, idx, clip_json, element_json,
                                                     format, storage_key, public_url, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    _new_id(), crawl_id, item["index"], item.get("clip_json"), item.get("element_json"),
                    item["format"], item["storage_key"], item["public_url"], now
                ))
                count += 1
        return count

    @staticmethod
    def _upsert_technology(conn: sqlite3.Connection, tech: Any) -> str:
        conn.execute("""
            INSERT INTO technologies (id, slug, name, website_url)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(slug) DO UPDATE SET
                name = excluded.name,
                website_url = COALESCE(excluded.website_url, technologies.website_url)
        """, (_new_id(), tech.slug, tech.name, tech.website_url))
        return conn.execute("SELECT id FROM technologies WHERE slug = ?", (tech.slug,)).fetchone()["id"]

    def upsert_technologies(self, technologies: Iterable[Any]) -> Dict[str, str]:
        """
        Upsert technologies by slug.

        Args:
            technologies: Objects with ``slug``, ``name`` and ``website_url``

        Returns:
            Mapping of slug to technology id
        """
        ids = {}
        with self._transaction() as conn:
            for tech in technologies:
                ids[tech.slug] = self._upsert_technology(conn, tech)
        return ids

    def set_technologies(
        self,
        crawl_id: str,
        technologies: Iterable[Any],
        technology_ids: Optional[Dict[str, str]] = None,
    ) -> int:
        """
        Replace a crawl's detected technologies in one transaction.

        Technologies missing from ``technology_ids`` are upserted on the way.

        Returns:
            Number of technologies linked to the crawl
        """
        technology_ids = technology_ids or {}
        count = 0
        with self._transaction() as conn:
            conn.execute("DELETE FROM crawl_technologies WHERE crawl_id = ?", (crawl_id,))
            for tech in technologies:
                technology_id = technology_ids.get(tech.slug) or self._upsert_technology(conn, tech)
                cursor = conn.execute("""
                    INSERT INTO crawl_technologies (crawl_id, technology_id, confidence)
                    VALUES (?, ?, ?)
                    ON CONFLICT(crawl_id, technology_id) DO NOTHING
                """, (crawl_id, technology_id, tech.confidence))
                count += cursor.rowcount
        return count

    def get_technology(self, slug: str) -> Optional[Technology]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM technologies WHERE slug = ?", (slug,)).fetchone()
        return Technology(**dict(row)) if row else None
