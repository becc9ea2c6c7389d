SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied_at REAL NOT NULL
);

-- Users: directory kept for the auth layer and level lookups
CREATE TABLE IF NOT EXISTS users (
    user_id       INTEGER PRIMARY KEY,
    nickname      TEXT NOT NULL DEFAULT '',
    role          TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('user', 'creator', 'admin', 'super_admin')),
    creator_level TEXT NOT NULL DEFAULT '',
    api_key       TEXT NOT NULL DEFAULT '',
    created_at    REAL NOT NULL
);

-- Accounts: one Luminarias balance per user
CREATE TABLE IF NOT EXISTS user_luminarias (
    user_id           INTEGER PRIMARY KEY,
    current_balance   INTEGER NOT NULL DEFAULT 0,
    total_earned      INTEGER NOT NULL DEFAULT 0,
    total_spent       INTEGER NOT NULL DEFAULT 0,
    lifetime_earnings INTEGER NOT NULL DEFAULT 0,
    last_activity     REAL,
    created_at        REAL NOT NULL,
    updated_at        REAL NOT NULL
);

-- Transactions: append-only journal of every balance change
CREATE TABLE IF NOT EXISTS luminarias_transactions (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id          INTEGER NOT NULL,
    transaction_type TEXT NOT NULL CHECK (transaction_type IN ('earn', 'spend', 'transfer_in', 'transfer_out', 'conversion')),
    amount           INTEGER NOT NULL CHECK (amount != 0),
    balance_after    INTEGER NOT NULL,
    user_role        TEXT NOT NULL DEFAULT 'user',
    category         TEXT NOT NULL,
    subcategory      TEXT,
    action_type      TEXT NOT NULL DEFAULT '',
    description      TEXT NOT NULL DEFAULT '',
    reference_id     TEXT,
    reference_type   TEXT,
    from_user_id     INTEGER,
    to_user_id       INTEGER,
    metadata         TEXT NOT NULL DEFAULT '{}',
    created_at       REAL NOT NULL,
    FOREIGN KEY (user_id) REFERENCES user_luminarias(user_id)
);

CREATE TRIGGER IF NOT EXISTS trg_luminarias_transactions_no_update
BEFORE UPDATE ON luminarias_transactions
BEGIN
    SELECT RAISE(ABORT, 'luminarias_transactions is append-only');
END;

CREATE TRIGGER IF NOT EXISTS trg_luminarias_transactions_no_delete
BEFORE DELETE ON luminarias_transactions
BEGIN
    SELECT RAISE(ABORT, 'luminarias_transactions is append-only');
END;

-- Admin adjustments: separate audit trail for privileged corrections
CREATE TABLE IF NOT EXISTS admin_adjustments (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    transaction_id INTEGER NOT NULL,
    user_id        INTEGER NOT NULL,
    admin_id       INTEGER NOT NULL,
    amount         INTEGER NOT NULL,
    reason         TEXT NOT NULL,
    allow_negative INTEGER NOT NULL DEFAULT 0,
    created_at     REAL NOT NULL,
    FOREIGN KEY (transaction_id) REFERENCES luminarias_transactions(id)
);

-- Marketplace: user-to-user service listings
CREATE TABLE IF NOT EXISTS luminarias_marketplace (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    provider_id      INTEGER NOT NULL,
    service_name     TEXT NOT NULL,
    service_description TEXT NOT NULL DEFAULT '',
    category         TEXT NOT NULL,
    price_luminarias INTEGER NOT NULL CHECK (price_luminarias > 0),
    service_type     TEXT NOT NULL DEFAULT 'one_time',
    duration_minutes INTEGER,
    max_clients      INTEGER,
    current_clients  INTEGER NOT NULL DEFAULT 0 CHECK (current_clients >= 0),
    delivery_method  TEXT NOT NULL DEFAULT '',
    is_active        INTEGER NOT NULL DEFAULT 1,
    created_at       REAL NOT NULL
);

-- Bookings: escrowed purchases of marketplace services
CREATE TABLE IF NOT EXISTS luminarias_marketplace_bookings (
    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
    service_id            INTEGER NOT NULL,
    client_id             INTEGER NOT NULL,
    provider_id           INTEGER NOT NULL,
    transaction_id        INTEGER NOT NULL,
    total_price           INTEGER NOT NULL,
    status                TEXT NOT NULL DEFAULT 'confirmed' CHECK (status IN ('confirmed', 'completed', 'cancelled')),
    commission_amount     INTEGER,
    provider_amount       INTEGER,
    payout_transaction_id INTEGER,
    refund_transaction_id INTEGER,
    scheduled_at          REAL,
    delivery_notes        TEXT,
    completion_notes      TEXT,
    created_at            REAL NOT NULL,
    completed_at          REAL,
    cancelled_at          REAL,
    FOREIGN KEY (service_id) REFERENCES luminarias_marketplace(id),
    FOREIGN KEY (transaction_id) REFERENCES luminarias_transactions(id)
);

-- Conversions: Luminarias -> real money requests awaiting review
CREATE TABLE IF NOT EXISTS luminarias_conversions (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id           INTEGER NOT NULL,
    transaction_id    INTEGER,
    luminarias_amount INTEGER NOT NULL,
    gross_amount      TEXT NOT NULL,
    commission_amount TEXT NOT NULL,
    net_amount        TEXT NOT NULL,
    payment_method    TEXT NOT NULL,
    payment_details   TEXT NOT NULL DEFAULT '{}',
    notes             TEXT,
    status            TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'processed', 'rejected')),
    reviewed_by       INTEGER,
    review_notes      TEXT,
    refund_transaction_id INTEGER,
    created_at        REAL NOT NULL,
    processed_at      REAL
);

-- Withdrawals: spend-based withdrawal requests awaiting review
CREATE TABLE IF NOT EXISTS luminarias_withdrawals (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id          INTEGER NOT NULL,
    transaction_id   INTEGER,
    original_amount  INTEGER NOT NULL,
    processing_fee   INTEGER NOT NULL DEFAULT 0,
    final_amount     INTEGER NOT NULL,
    withdrawal_type  TEXT NOT NULL,
    payment_method   TEXT NOT NULL,
    payment_details  TEXT NOT NULL DEFAULT '{}',
    notes            TEXT,
    status           TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'completed', 'rejected', 'failed')),
    reviewed_by      INTEGER,
    review_notes     TEXT,
    refund_transaction_id INTEGER,
    created_at       REAL NOT NULL,
    processed_at     REAL
);

-- Store: items sold for Luminarias
CREATE TABLE IF NOT EXISTS luminarias_store_items (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    name             TEXT NOT NULL,
    description      TEXT NOT NULL DEFAULT '',
    category         TEXT NOT NULL,
    subcategory      TEXT NOT NULL DEFAULT '',
    item_type        TEXT NOT NULL DEFAULT 'consumable',
    target_role      TEXT NOT NULL DEFAULT 'both' CHECK (target_role IN ('user', 'creator', 'both')),
    price_luminarias INTEGER NOT NULL CHECK (price_luminarias > 0),
    limited_quantity INTEGER NOT NULL DEFAULT 0,
    stock_remaining  INTEGER,
    duration_days    INTEGER,
    max_uses         INTEGER,
    is_active        INTEGER NOT NULL DEFAULT 1,
    created_at       REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS luminarias_purchases (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id        INTEGER NOT NULL,
    store_item_id  INTEGER NOT NULL,
    transaction_id INTEGER NOT NULL,
    quantity       INTEGER NOT NULL,
    unit_price     INTEGER NOT NULL,
    total_price    INTEGER NOT NULL,
    expires_at     REAL,
    uses_remaining INTEGER,
    created_at     REAL NOT NULL,
    FOREIGN KEY (store_item_id) REFERENCES luminarias_store_items(id),
    FOREIGN KEY (transaction_id) REFERENCES luminarias_transactions(id)
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_transactions_user_created ON luminarias_transactions(user_id, created_at);
CREATE INDEX IF NOT EXISTS idx_transactions_type ON luminarias_transactions(transaction_type);
CREATE INDEX IF NOT EXISTS idx_transactions_category ON luminarias_transactions(category);
CREATE INDEX IF NOT EXISTS idx_users_api_key ON users(api_key);
CREATE INDEX IF NOT EXISTS idx_marketplace_provider ON luminarias_marketplace(provider_id);
CREATE INDEX IF NOT EXISTS idx_bookings_client ON luminarias_marketplace_bookings(client_id);
CREATE INDEX IF NOT EXISTS idx_bookings_provider ON luminarias_marketplace_bookings(provider_id);
CREATE INDEX IF NOT EXISTS idx_conversions_status ON luminarias_conversions(status);
CREATE INDEX IF NOT EXISTS idx_conversions_user ON luminarias_conversions(user_id);
CREATE INDEX IF NOT EXISTS idx_withdrawals_status ON luminarias_withdrawals(status);
CREATE INDEX IF NOT EXISTS idx_withdrawals_user ON luminarias_withdrawals(user_id);
CREATE INDEX IF NOT EXISTS idx_purchases_user ON luminarias_purchases(user_id);
"""
