SCHEMA_SQL = r"""
-- SKUs (reference data)
CREATE TABLE IF NOT EXISTS skus (
  id TEXT PRIMARY KEY,
  name TEXT NOT NULL,
  category TEXT NOT NULL,
  dietary TEXT NOT NULL DEFAULT 'N/A',
  pieces_per_packet INTEGER NOT NULL DEFAULT 1,
  sort_order INTEGER NOT NULL DEFAULT 0,
  cost_price REAL
);

-- Stock movements (append-only; soft-deleted rows keep their data)
CREATE TABLE IF NOT EXISTS transactions (
  id TEXT PRIMARY KEY,
  batch_id TEXT,
  date TEXT NOT NULL,                    -- local calendar day YYYY-MM-DD
  timestamp INTEGER NOT NULL,            -- epoch millis
  branch_id TEXT NOT NULL,               -- branch id or 'FRIDGE'
  sku_id TEXT NOT NULL,
  type TEXT NOT NULL,                    -- CHECK_OUT / CHECK_IN / WASTE / RESTOCK / ADJUSTMENT
  quantity_pieces REAL NOT NULL,
  user_id TEXT,
  user_name TEXT,
  deleted_at TEXT,
  deleted_by TEXT,
  FOREIGN KEY (sku_id) REFERENCES skus(id)
);

CREATE INDEX IF NOT EXISTS ix_transactions_branch_date ON transactions(branch_id, date);
CREATE INDEX IF NOT EXISTS ix_transactions_sku ON transactions(sku_id);
"""
