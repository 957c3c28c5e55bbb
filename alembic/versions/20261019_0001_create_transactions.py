"""Create transactions table with per-intent 384d embeddings

Revision ID: 20261019_0001_create_transactions
Revises:
Create Date: 2026-10-19 00:01:00.000000
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = "20261019_0001_create_transactions"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EMBEDDING_COLUMNS = (
    "content_embedding",
    "amount_embedding",
    "date_embedding",
    "category_embedding",
    "combined_embedding",
)


def upgrade() -> None:
    """Create the transactions table, its enum and the lookup indexes."""
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")
    op.execute(
        """
        DO $$ BEGIN
            CREATE TYPE transaction_type AS ENUM ('debit', 'credit');
        EXCEPTION
            WHEN duplicate_object THEN NULL;
        END $$;
        """
    )

    embedding_ddl = ",\n".join(f"            {name} VECTOR(384)" for name in EMBEDDING_COLUMNS)
    op.execute(
        f"""
        CREATE TABLE IF NOT EXISTS transactions (
            id UUID PRIMARY KEY,
            description TEXT NOT NULL,
            amount NUMERIC(14, 2) NOT NULL,
            transaction_type transaction_type NOT NULL DEFAULT 'debit',
            transaction_date TIMESTAMPTZ NOT NULL,
            counterparty_account VARCHAR(64),
            counterparty_name VARCHAR(255),
            customer_name VARCHAR(255),
            category_code VARCHAR(50),
            category_name VARCHAR(255),
            label VARCHAR(255) NOT NULL DEFAULT 'Uncategorized',
{embedding_ddl},
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
        """
    )

    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_transactions_transaction_date "
        "ON transactions (transaction_date);"
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_transactions_counterparty_account "
        "ON transactions (counterparty_account);"
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_transactions_customer_name "
        "ON transactions (customer_name);"
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_transactions_category_code "
        "ON transactions (category_code);"
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_transactions_customer_date "
        "ON transactions (customer_name, transaction_date);"
    )
    for name in EMBEDDING_COLUMNS:
        op.execute(
            f"CREATE INDEX IF NOT EXISTS idx_transactions_{name}_hnsw "
            f"ON transactions USING hnsw ({name} vector_cosine_ops);"
        )


def downgrade() -> None:
    """Drop transactions table, indexes and enum."""
    for name in EMBEDDING_COLUMNS:
        op.execute(f"DROP INDEX IF EXISTS idx_transactions_{name}_hnsw")
    op.execute("DROP INDEX IF EXISTS ix_transactions_customer_date")
    op.execute("DROP INDEX IF EXISTS ix_transactions_category_code")
    op.execute("DROP INDEX IF EXISTS ix_transactions_customer_name")
    op.execute("DROP INDEX IF EXISTS ix_transactions_counterparty_account")
    op.execute("DROP INDEX IF EXISTS ix_transactions_transaction_date")
    op.execute("DROP TABLE IF EXISTS transactions")
    op.execute("DROP TYPE IF EXISTS transaction_type")
