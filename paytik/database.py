"""Database management module for PAYTIK."""
import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime

import pandas as pd

from paytik.config import DEFAULT_DB_NAME, INITIAL_BALANCE, DEFAULT_FEATURE_FLAGS
from paytik.exceptions import DatabaseError, TransactionError

logger = logging.getLogger(__name__)


def new_id(prefix):
    """Generate a short unique identifier such as ``bnpl-1f3a9c0d2b4e``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class DatabaseManager:
    """Handles all SQLite database operations.

    Every record is kept in a table keyed by alias. Write helpers
    commit immediately unless they run inside ``transaction()``, in which
    case the outermost block commits or rolls back everything at once.
    """

    def __init__(self, db_name=DEFAULT_DB_NAME):
        self.db_name = db_name
        try:
            self.conn = sqlite3.connect(db_name)
        except sqlite3.Error as e:
            raise DatabaseError(f"Cannot open database: {e}", {'db_name': db_name})
        self._closed = False
        self._tx_depth = 0
        self.create_tables()

    def close(self):
        """Close the database connection."""
        if getattr(self, "conn", None) is not None and not self._closed:
            self.conn.close()
            self._closed = True

    def __del__(self):
        """Ensure connection is closed on garbage collection."""
        self.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @property
    def in_transaction(self):
        return self._tx_depth > 0

    def _commit(self):
        if self._tx_depth == 0:
            self.conn.commit()

    @contextmanager
    def transaction(self):
        """Context manager for multi-step writes with automatic rollback on failure.

        Usage:
            with db.transaction():
                db.set_balance(payer, ...)
                db.set_balance(payee, ...)
                db.add_transaction(...)

        Nested blocks join the outermost one; only the outermost block commits.
        If any exception occurs, every write since the outermost block started
        is rolled back.
        """
        self._tx_depth += 1
        try:
            yield
        except sqlite3.Error as e:
            self._tx_depth -= 1
            if self._tx_depth == 0:
                self.conn.rollback()
                logger.error("Transaction rolled back: %s", e)
            raise TransactionError(f"Transaction failed: {str(e)}")
        except Exception:
            self._tx_depth -= 1
            if self._tx_depth == 0:
                self.conn.rollback()
            raise
        else:
            self._tx_depth -= 1
            if self._tx_depth == 0:
                self.conn.commit()

    def create_tables(self):
        cursor = self.conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                alias TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                email TEXT,
                pin_hash TEXT,
                role TEXT DEFAULT 'user',
                avatar TEXT,
                is_suspended INTEGER DEFAULT 0,
                feature_flags TEXT,
                created_at TEXT
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS balances (
                alias TEXT PRIMARY KEY,
                balance REAL DEFAULT 0
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS transactions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                ref TEXT UNIQUE,
                alias TEXT,
                type TEXT,
                counterparty TEXT,
                reason TEXT,
                date TEXT,
                amount REAL,
                status TEXT
            )
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_transactions_alias ON transactions(alias)")
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS credit_requests (
                id TEXT PRIMARY KEY,
                product TEXT NOT NULL,
                alias TEXT NOT NULL,
                amount REAL NOT NULL,
                status TEXT NOT NULL,
                reason TEXT,
                repayment_plan TEXT,
                request_date TEXT,
                repaid_amount REAL DEFAULT 0,
                merchant_alias TEXT,
                down_payment REAL DEFAULT 0,
                installments_count INTEGER,
                repayment_frequency TEXT,
                first_installment_date TEXT,
                margin_rate REAL,
                financing_type TEXT,
                duration_months INTEGER,
                purpose TEXT,
                decided_at TEXT
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS vaults (
                id TEXT PRIMARY KEY,
                alias TEXT,
                name TEXT,
                balance REAL DEFAULT 0,
                target_amount REAL
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS tontines (
                id TEXT PRIMARY KEY,
                alias TEXT,
                name TEXT,
                participants TEXT,
                amount REAL,
                frequency TEXT,
                progress REAL DEFAULT 0,
                is_my_turn INTEGER DEFAULT 0
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS virtual_cards (
                alias TEXT PRIMARY KEY,
                number TEXT,
                expiry TEXT,
                cvv TEXT,
                is_frozen INTEGER DEFAULT 0,
                balance REAL DEFAULT 0
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS card_transactions (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT,
                alias TEXT,
                type TEXT,
                amount REAL,
                merchant TEXT,
                date TEXT
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS contacts (
                id TEXT PRIMARY KEY,
                owner TEXT,
                name TEXT,
                alias TEXT
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS recurring_payments (
                id TEXT PRIMARY KEY,
                alias TEXT,
                recipient_alias TEXT,
                amount REAL,
                frequency TEXT,
                start_date TEXT,
                end_date TEXT,
                reason TEXT
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS treasury_accounts (
                name TEXT PRIMARY KEY,
                balance REAL DEFAULT 0
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS treasury_operations (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT,
                date TEXT,
                type TEXT,
                source TEXT,
                destination TEXT,
                amount REAL,
                status TEXT,
                description TEXT
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS roles (
                id TEXT PRIMARY KEY,
                name TEXT,
                description TEXT,
                permissions TEXT,
                is_deletable INTEGER DEFAULT 1
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS products (
                id TEXT,
                kind TEXT,
                name TEXT,
                PRIMARY KEY (id, kind)
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        """)
        self.conn.commit()

    # Helpers
    def _fetch_one(self, query, params=()):
        cursor = self.conn.cursor()
        cursor.execute(query, params)
        row = cursor.fetchone()
        if row:
            cols = [description[0] for description in cursor.description]
            return dict(zip(cols, row))
        return None

    def _fetch_all(self, query, params=()):
        cursor = self.conn.cursor()
        cursor.execute(query, params)
        cols = [description[0] for description in cursor.description]
        return [dict(zip(cols, row)) for row in cursor.fetchall()]

    def _execute(self, query, params=()):
        cursor = self.conn.cursor()
        cursor.execute(query, params)
        self._commit()
        return cursor

    # User operations
    def add_user(self, alias, name, email, pin_hash, role="user"):
        self._execute("""
            INSERT INTO users (alias, name, email, pin_hash, role, is_suspended, feature_flags, created_at)
            VALUES (?, ?, ?, ?, ?, 0, ?, ?)
        """, (alias, name, email, pin_hash, role, json.dumps(DEFAULT_FEATURE_FLAGS),
              datetime.now().strftime("%Y-%m-%d %H:%M:%S")))

    def get_user(self, alias):
        row = self._fetch_one("SELECT * FROM users WHERE alias=?", (alias,))
        if row:
            row['is_suspended'] = bool(row['is_suspended'])
            row['feature_flags'] = json.loads(row['feature_flags']) if row['feature_flags'] else dict(DEFAULT_FEATURE_FLAGS)
        return row

    def get_user_aliases(self):
        cursor = self.conn.cursor()
        cursor.execute("SELECT alias FROM users ORDER BY created_at, alias")
        return [r[0] for r in cursor.fetchall()]

    def set_user_suspended(self, alias, suspended):
        self._execute("UPDATE users SET is_suspended=? WHERE alias=?", (1 if suspended else 0, alias))

    def set_user_feature_flags(self, alias, flags):
        self._execute("UPDATE users SET feature_flags=? WHERE alias=?", (json.dumps(flags), alias))

    def set_user_pin_hash(self, alias, pin_hash):
        self._execute("UPDATE users SET pin_hash=? WHERE alias=?", (pin_hash, alias))

    def set_user_avatar(self, alias, avatar):
        self._execute("UPDATE users SET avatar=? WHERE alias=?", (avatar, alias))

    # Balance operations
    def get_balance(self, alias):
        cursor = self.conn.cursor()
        cursor.execute("SELECT balance FROM balances WHERE alias=?", (alias,))
        row = cursor.fetchone()
        if row is None:
            # New alias starts with the initial balance
            self._execute("INSERT INTO balances (alias, balance) VALUES (?, ?)", (alias, INITIAL_BALANCE))
            return float(INITIAL_BALANCE)
        return row[0]

    def set_balance(self, alias, balance):
        self._execute("""
            INSERT INTO balances (alias, balance) VALUES (?, ?)
            ON CONFLICT(alias) DO UPDATE SET balance=excluded.balance
        """, (alias, balance))

    # Ledger operations
    def add_transaction(self, alias, tx_type, counterparty, reason, amount, status, date=None, ref=None):
        if ref is None:
            ref = f"TXN{uuid.uuid4().hex[:10].upper()}"
        if date is None:
            date = datetime.now().isoformat()
        self._execute("""
            INSERT INTO transactions (ref, alias, type, counterparty, reason, date, amount, status)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (ref, alias, tx_type, counterparty, reason, date, amount, status))
        return ref

    def get_transactions(self, alias, limit=None):
        """Return an alias's transactions, newest first."""
        query = "SELECT * FROM transactions WHERE alias=? ORDER BY id DESC"
        params = [alias]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        return self._fetch_all(query, tuple(params))

    def get_transaction(self, ref):
        return self._fetch_one("SELECT * FROM transactions WHERE ref=?", (ref,))

    def get_ledger(self, alias=None, start_date=None, end_date=None):
        """Get transactions as a DataFrame, optionally for one alias and a date range."""
        query = "SELECT * FROM transactions WHERE 1=1"
        params = []

        if alias:
            query += " AND alias = ?"
            params.append(alias)
        if start_date:
            query += " AND date >= ?"
            params.append(start_date)
        if end_date:
            query += " AND date <= ?"
            params.append(end_date)

        query += " ORDER BY date, id"

        return pd.read_sql_query(query, self.conn, params=tuple(params))

    # Credit request operations
    def add_credit_request(self, request):
        """Insert a credit request given as a dict of column values."""
        cols = list(request.keys())
        placeholders = ", ".join("?" for _ in cols)
        self._execute(
            f"INSERT INTO credit_requests ({', '.join(cols)}) VALUES ({placeholders})",
            tuple(request[c] for c in cols),
        )

    def get_credit_request(self, request_id):
        return self._fetch_one("SELECT * FROM credit_requests WHERE id=?", (request_id,))

    def get_credit_requests(self, product=None, alias=None, merchant_alias=None, status=None):
        query = "SELECT * FROM credit_requests WHERE 1=1"
        params = []
        if product:
            query += " AND product = ?"
            params.append(product)
        if alias:
            query += " AND alias = ?"
            params.append(alias)
        if merchant_alias:
            query += " AND merchant_alias = ?"
            params.append(merchant_alias)
        if status:
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY request_date, id"
        return self._fetch_all(query, tuple(params))

    def transition_credit_request(self, request_id, from_status, to_status, reason=None):
        """Compare-and-set the status of a request.

        Returns:
            True if the row was in ``from_status`` and has been updated.
        """
        decided_at = datetime.now().isoformat()
        if reason is None:
            cursor = self._execute(
                "UPDATE credit_requests SET status=?, decided_at=? WHERE id=? AND status=?",
                (to_status, decided_at, request_id, from_status))
        else:
            cursor = self._execute(
                "UPDATE credit_requests SET status=?, reason=?, decided_at=? WHERE id=? AND status=?",
                (to_status, reason, decided_at, request_id, from_status))
        return cursor.rowcount == 1

    def set_repaid_amount(self, request_id, repaid_amount):
        self._execute("UPDATE credit_requests SET repaid_amount=? WHERE id=?", (repaid_amount, request_id))

    def set_repayment_plan(self, request_id, plan):
        self._execute("UPDATE credit_requests SET repayment_plan=? WHERE id=?", (plan, request_id))

    def set_credit_request_reason(self, request_id, reason):
        self._execute("UPDATE credit_requests SET reason=? WHERE id=?", (reason, request_id))

    # Vault operations
    def add_vault(self, vault_id, alias, name, balance, target_amount):
        self._execute("INSERT INTO vaults (id, alias, name, balance, target_amount) VALUES (?, ?, ?, ?, ?)",
                      (vault_id, alias, name, balance, target_amount))

    def get_vaults(self, alias):
        return self._fetch_all("SELECT * FROM vaults WHERE alias=? ORDER BY rowid", (alias,))

    def get_vault(self, alias, vault_id):
        return self._fetch_one("SELECT * FROM vaults WHERE alias=? AND id=?", (alias, vault_id))

    def set_vault_balance(self, vault_id, balance):
        self._execute("UPDATE vaults SET balance=? WHERE id=?", (balance, vault_id))

    # Tontine operations
    def add_tontine(self, tontine_id, alias, name, participants, amount, frequency):
        self._execute("""
            INSERT INTO tontines (id, alias, name, participants, amount, frequency, progress, is_my_turn)
            VALUES (?, ?, ?, ?, ?, ?, 0, 0)
        """, (tontine_id, alias, name, json.dumps(participants), amount, frequency))

    def _tontine_row(self, row):
        if row:
            row['participants'] = json.loads(row['participants'] or "[]")
            row['is_my_turn'] = bool(row['is_my_turn'])
        return row

    def get_tontines(self, alias):
        rows = self._fetch_all("SELECT * FROM tontines WHERE alias=? ORDER BY rowid", (alias,))
        return [self._tontine_row(r) for r in rows]

    def get_tontine(self, alias, tontine_id):
        return self._tontine_row(
            self._fetch_one("SELECT * FROM tontines WHERE alias=? AND id=?", (alias, tontine_id)))

    def update_tontine_progress(self, tontine_id, progress, is_my_turn):
        self._execute("UPDATE tontines SET progress=?, is_my_turn=? WHERE id=?",
                      (progress, 1 if is_my_turn else 0, tontine_id))

    # Virtual card operations
    def save_card(self, alias, number, expiry, cvv, is_frozen, balance):
        self._execute("""
            INSERT INTO virtual_cards (alias, number, expiry, cvv, is_frozen, balance)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(alias) DO UPDATE SET number=excluded.number, expiry=excluded.expiry,
                cvv=excluded.cvv, is_frozen=excluded.is_frozen, balance=excluded.balance
        """, (alias, number, expiry, cvv, 1 if is_frozen else 0, balance))

    def get_card(self, alias):
        row = self._fetch_one("SELECT * FROM virtual_cards WHERE alias=?", (alias,))
        if row:
            row['is_frozen'] = bool(row['is_frozen'])
        return row

    def delete_card(self, alias):
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM card_transactions WHERE alias=?", (alias,))
        cursor.execute("DELETE FROM virtual_cards WHERE alias=?", (alias,))
        self._commit()

    def add_card_transaction(self, alias, tx_type, amount, merchant, date=None):
        tx_id = new_id("vtx")
        if date is None:
            date = datetime.now().isoformat()
        self._execute("""
            INSERT INTO card_transactions (id, alias, type, amount, merchant, date)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (tx_id, alias, tx_type, amount, merchant, date))
        return tx_id

    def get_card_transactions(self, alias):
        return self._fetch_all(
            "SELECT id, type, amount, merchant, date FROM card_transactions WHERE alias=? ORDER BY seq DESC",
            (alias,))

    # Contact operations
    def add_contact(self, contact_id, owner, name, alias):
        self._execute("INSERT INTO contacts (id, owner, name, alias) VALUES (?, ?, ?, ?)",
                      (contact_id, owner, name, alias))

    def get_contacts(self, owner):
        return self._fetch_all("SELECT id, name, alias FROM contacts WHERE owner=? ORDER BY rowid", (owner,))

    def delete_contact(self, owner, contact_id):
        return self._execute("DELETE FROM contacts WHERE owner=? AND id=?", (owner, contact_id)).rowcount

    # Recurring payment operations
    def add_recurring_payment(self, payment_id, alias, recipient_alias, amount, frequency,
                              start_date, end_date, reason):
        self._execute("""
            INSERT INTO recurring_payments (id, alias, recipient_alias, amount, frequency, start_date, end_date, reason)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (payment_id, alias, recipient_alias, amount, frequency, start_date, end_date, reason))

    def get_recurring_payments(self, alias):
        return self._fetch_all("""
            SELECT id, recipient_alias, amount, frequency, start_date, end_date, reason
            FROM recurring_payments WHERE alias=? ORDER BY rowid
        """, (alias,))

    def delete_recurring_payment(self, alias, payment_id):
        return self._execute("DELETE FROM recurring_payments WHERE alias=? AND id=?",
                             (alias, payment_id)).rowcount

    # Treasury operations
    def get_treasury_accounts(self):
        cursor = self.conn.cursor()
        cursor.execute("SELECT name, balance FROM treasury_accounts")
        return dict(cursor.fetchall())

    def set_treasury_balance(self, name, balance):
        self._execute("""
            INSERT INTO treasury_accounts (name, balance) VALUES (?, ?)
            ON CONFLICT(name) DO UPDATE SET balance=excluded.balance
        """, (name, balance))

    def add_treasury_operation(self, op_id, date, op_type, source, destination, amount, status, description):
        self._execute("""
            INSERT INTO treasury_operations (id, date, type, source, destination, amount, status, description)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (op_id, date, op_type, source, destination, amount, status, description))

    def get_treasury_operations(self):
        return self._fetch_all("""
            SELECT id, date, type, source, destination, amount, status, description
            FROM treasury_operations ORDER BY seq DESC
        """)

    # Role operations
    def save_role(self, role_id, name, description, permissions, is_deletable):
        self._execute("""
            INSERT INTO roles (id, name, description, permissions, is_deletable) VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET name=excluded.name, description=excluded.description,
                permissions=excluded.permissions, is_deletable=excluded.is_deletable
        """, (role_id, name, description, json.dumps(permissions), 1 if is_deletable else 0))

    def get_roles(self):
        rows = self._fetch_all("SELECT * FROM roles ORDER BY rowid")
        for r in rows:
            r['permissions'] = json.loads(r['permissions'] or "[]")
            r['is_deletable'] = bool(r['is_deletable'])
        return rows

    def delete_role(self, role_id):
        self._execute("DELETE FROM roles WHERE id=?", (role_id,))

    # Product operations
    def add_product(self, product_id, kind, name):
        self._execute("INSERT INTO products (id, kind, name) VALUES (?, ?, ?)", (product_id, kind, name))

    def get_products(self, kind):
        return self._fetch_all("SELECT id, name FROM products WHERE kind=? ORDER BY rowid", (kind,))

    def delete_product(self, product_id, kind):
        return self._execute("DELETE FROM products WHERE id=? AND kind=?", (product_id, kind)).rowcount

    # Settings
    def get_setting(self, key, default=None):
        cursor = self.conn.cursor()
        cursor.execute("SELECT value FROM settings WHERE key=?", (key,))
        row = cursor.fetchone()
        return row[0] if row else default

    def set_setting(self, key, value):
        self._execute("INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)", (key, str(value)))
