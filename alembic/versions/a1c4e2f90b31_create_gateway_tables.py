"""Create gateway mandate, subscription, pending and ledger tables.

Revision ID: a1c4e2f90b31
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "a1c4e2f90b31"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "gateway_mandates" not in existing_tables:
        op.create_table(
            "gateway_mandates",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
            sa.Column("mandate_id", sa.String(64), nullable=False, unique=True),
            sa.Column("client_id", sa.Integer(), nullable=False),
            sa.Column("method", sa.String(40), nullable=False),
            sa.Column("status", sa.String(40), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_gateway_mandates_client_id", "gateway_mandates", ["client_id"])

    if "gateway_subscriptions" not in existing_tables:
        op.create_table(
            "gateway_subscriptions",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
            sa.Column("subscription_id", sa.String(64), nullable=False, unique=True),
            sa.Column("customer_id", sa.String(64), nullable=False),
            sa.Column("client_id", sa.Integer(), nullable=False),
            sa.Column("service_id", sa.Integer(), server_default="0"),
            sa.Column("status", sa.String(40), nullable=False),
            sa.Column("amount", sa.Numeric(12, 2), nullable=True),
            sa.Column("interval", sa.String(40), nullable=True),
            sa.Column("description", sa.String(255), nullable=True),
            sa.Column("next_payment_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index(
            "ix_gateway_subscriptions_client_id", "gateway_subscriptions", ["client_id"]
        )

    if "gateway_pending_transactions" not in existing_tables:
        op.create_table(
            "gateway_pending_transactions",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
            sa.Column("invoice_id", sa.Integer(), nullable=False),
            sa.Column("transaction_id", sa.String(64), nullable=False),
            sa.Column("status", sa.String(40), server_default="pending"),
            sa.Column("details", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.UniqueConstraint("invoice_id", name="uq_gateway_pending_transactions_invoice"),
        )

    if "gateway_customers" not in existing_tables:
        op.create_table(
            "gateway_customers",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
            sa.Column("client_id", sa.Integer(), nullable=False, unique=True),
            sa.Column("customer_id", sa.String(64), nullable=False, unique=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )

    # Host ledger tables; skipped when the billing host already provides them
    if "invoices" not in existing_tables:
        invoice_status = postgresql.ENUM(
            "unpaid",
            "paid",
            "cancelled",
            "refunded",
            "collections",
            name="invoicestatus",
        )
        invoice_status.create(bind, checkfirst=True)
        op.create_table(
            "invoices",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("client_id", sa.Integer(), nullable=False),
            sa.Column("payment_method", sa.String(60), nullable=False),
            sa.Column(
                "status",
                postgresql.ENUM(name="invoicestatus", create_type=False),
                server_default="unpaid",
            ),
            sa.Column("total", sa.Numeric(12, 2), server_default="0.00"),
            sa.Column("date_paid", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_invoices_client_id", "invoices", ["client_id"])

    if "ledger_transactions" not in existing_tables:
        kind = postgresql.ENUM("payment", "chargeback", "adjustment", name="ledgertransactionkind")
        kind.create(bind, checkfirst=True)
        op.create_table(
            "ledger_transactions",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
            sa.Column("client_id", sa.Integer(), nullable=False),
            sa.Column("invoice_id", sa.Integer(), nullable=True),
            sa.Column("transaction_id", sa.String(64), nullable=False),
            sa.Column(
                "kind",
                postgresql.ENUM(name="ledgertransactionkind", create_type=False),
                nullable=False,
            ),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("amount_in", sa.Numeric(12, 2), server_default="0.00"),
            sa.Column("amount_out", sa.Numeric(12, 2), server_default="0.00"),
            sa.Column("fees", sa.Numeric(12, 2), server_default="0.00"),
            sa.Column("payment_method", sa.String(60), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.UniqueConstraint(
                "transaction_id", "kind", name="uq_ledger_transactions_transaction_kind"
            ),
        )
        op.create_index(
            "ix_ledger_transactions_invoice_id", "ledger_transactions", ["invoice_id"]
        )

    if "gateway_logs" not in existing_tables:
        op.create_table(
            "gateway_logs",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
            sa.Column("gateway", sa.String(60), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("status", sa.String(40), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )


def downgrade() -> None:
    op.drop_table("gateway_logs")
    op.drop_index("ix_ledger_transactions_invoice_id", table_name="ledger_transactions")
    op.drop_table("ledger_transactions")
    op.drop_index("ix_invoices_client_id", table_name="invoices")
    op.drop_table("invoices")
    op.drop_table("gateway_customers")
    op.drop_table("gateway_pending_transactions")
    op.drop_index("ix_gateway_subscriptions_client_id", table_name="gateway_subscriptions")
    op.drop_table("gateway_subscriptions")
    op.drop_index("ix_gateway_mandates_client_id", table_name="gateway_mandates")
    op.drop_table("gateway_mandates")
    postgresql.ENUM(name="ledgertransactionkind").drop(op.get_bind(), checkfirst=True)
    postgresql.ENUM(name="invoicestatus").drop(op.get_bind(), checkfirst=True)
