"""initial billing schema

Revision ID: 0001a7c3e9b2
Revises:
Create Date: 2026-10-18

"""
import json
from datetime import datetime

from alembic import op
import sqlalchemy as sa


revision = "0001a7c3e9b2"
down_revision = None
branch_labels = None
depends_on = None

SEED_DATE = datetime(2026, 10, 18)


def _audit_columns():
    return [
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("status", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("create_date", sa.DateTime(), nullable=False),
        sa.Column("create_by", sa.String(100), nullable=True),
        sa.Column("update_date", sa.DateTime(), nullable=True),
        sa.Column("update_by", sa.String(100), nullable=True),
        sa.Column("delete_date", sa.DateTime(), nullable=True),
        sa.Column("delete_by", sa.String(100), nullable=True),
    ]


def _reference_table(name: str) -> None:
    op.create_table(
        name,
        *_audit_columns(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("detail", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(f"ix_{name}_status", name, ["status"])


def upgrade() -> None:
    _reference_table("bill_type_information")
    _reference_table("payment_type_information")
    _reference_table("bill_transaction_type_information")

    op.create_table(
        "bill_information",
        *_audit_columns(),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("bill_no", sa.String(32), nullable=False),
        sa.Column("upload_key", sa.String(64), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("detail", sa.Text(), nullable=True),
        sa.Column("bill_type_id", sa.Integer(), nullable=True),
        sa.Column("expire_date", sa.Date(), nullable=False),
        sa.Column("send_date", sa.DateTime(), nullable=True),
        sa.Column("remark", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["bill_type_id"], ["bill_type_information.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("customer_id", "bill_no", name="uq_bill_customer_bill_no"),
    )
    for column in ("status", "customer_id", "bill_no", "upload_key"):
        op.create_index(f"ix_bill_information_{column}", "bill_information", [column])

    op.create_table(
        "bill_room_information",
        *_audit_columns(),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("bill_id", sa.Integer(), nullable=False),
        sa.Column("bill_no", sa.String(32), nullable=False),
        sa.Column("house_no", sa.String(64), nullable=False),
        sa.Column("member_name", sa.String(255), nullable=True),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("remark", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["bill_id"], ["bill_information.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("customer_id", "bill_no", name="uq_bill_room_customer_bill_no"),
    )
    for column in ("status", "customer_id", "bill_id", "bill_no", "house_no"):
        op.create_index(f"ix_bill_room_information_{column}", "bill_room_information", [column])

    op.create_table(
        "bill_audit",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("bill_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.Integer(), nullable=False),
        sa.Column("create_date", sa.DateTime(), nullable=False),
        sa.Column("create_by", sa.String(100), nullable=True),
        sa.ForeignKeyConstraint(["bill_id"], ["bill_information.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_bill_audit_bill_id", "bill_audit", ["bill_id"])

    op.create_table(
        "payment_information",
        *_audit_columns(),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("upload_key", sa.String(64), nullable=False),
        sa.Column("payable_type", sa.String(64), nullable=False),
        sa.Column("payable_id", sa.Integer(), nullable=False),
        sa.Column("payment_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_type_id", sa.Integer(), nullable=True),
        sa.Column("bank_id", sa.String(64), nullable=True),
        sa.Column("member_id", sa.String(64), nullable=True),
        sa.Column("payment_date", sa.DateTime(), nullable=True),
        sa.Column("remark", sa.Text(), nullable=True),
        sa.Column("member_remark", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["payment_type_id"], ["payment_type_information.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    for column in ("status", "customer_id", "upload_key", "member_id"):
        op.create_index(f"ix_payment_information_{column}", "payment_information", [column])
    op.create_index("ix_payment_payable", "payment_information", ["payable_type", "payable_id"])

    op.create_table(
        "bill_transaction_information",
        *_audit_columns(),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("bill_room_id", sa.Integer(), nullable=False),
        sa.Column("payment_id", sa.Integer(), nullable=True),
        sa.Column("bill_transaction_type_id", sa.Integer(), nullable=True),
        sa.Column("transaction_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("transaction_type", sa.String(16), nullable=False),
        sa.Column("transaction_type_json", sa.Text(), nullable=True),
        sa.Column("pay_date", sa.DateTime(), nullable=False),
        sa.Column("transaction_date", sa.DateTime(), nullable=False),
        sa.Column("remark", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["bill_room_id"], ["bill_room_information.id"]),
        sa.ForeignKeyConstraint(["payment_id"], ["payment_information.id"]),
        sa.ForeignKeyConstraint(["bill_transaction_type_id"], ["bill_transaction_type_information.id"]),
        sa.CheckConstraint(
            "(payment_id IS NULL) <> (bill_transaction_type_id IS NULL)",
            name="ck_transaction_source_xor",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    for column in ("status", "customer_id", "bill_room_id", "payment_id", "pay_date"):
        op.create_index(f"ix_bill_transaction_information_{column}", "bill_transaction_information", [column])

    op.create_table(
        "attachment_information",
        *_audit_columns(),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("upload_key", sa.String(64), nullable=False),
        sa.Column("menu", sa.String(32), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("file_ext", sa.String(16), nullable=True),
        sa.Column("file_path", sa.String(512), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    for column in ("status", "customer_id", "upload_key"):
        op.create_index(f"ix_attachment_information_{column}", "attachment_information", [column])

    op.create_table(
        "notification_audit_information",
        *_audit_columns(),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("table_name", sa.String(64), nullable=False),
        sa.Column("rows_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("detail", sa.Text(), nullable=True),
        sa.Column("topic", sa.String(64), nullable=True),
        sa.Column("type", sa.String(64), nullable=True),
        sa.Column("receiver", sa.String(128), nullable=True),
        sa.Column("remark", sa.Text(), nullable=True),
        sa.Column("push_status", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("push_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pushed_date", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    for column in ("status", "customer_id", "rows_id", "push_status"):
        op.create_index(
            f"ix_notification_audit_information_{column}", "notification_audit_information", [column]
        )

    for table in ("member_information", "room_information"):
        extra = (
            [sa.Column("full_name", sa.String(255), nullable=True), sa.Column("user_ref", sa.String(255), nullable=True)]
            if table == "member_information"
            else [sa.Column("title", sa.String(255), nullable=True)]
        )
        op.create_table(
            table,
            *_audit_columns(),
            sa.Column("customer_id", sa.String(64), nullable=False),
            sa.Column("house_no", sa.String(64), nullable=False),
            *extra,
            sa.PrimaryKeyConstraint("id"),
        )
        for column in ("status", "customer_id", "house_no"):
            op.create_index(f"ix_{table}_{column}", table, [column])

    app_config = op.create_table(
        "app_config",
        *_audit_columns(),
        sa.Column("config_key", sa.String(100), nullable=False),
        sa.Column("config_value", sa.Text(), nullable=True),
        sa.Column("data_type", sa.String(16), nullable=False, server_default="string"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("config_key"),
    )
    op.create_index("ix_app_config_status", "app_config", ["status"])

    op.create_table(
        "document_sequence",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("prefix", sa.String(16), nullable=False),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("seq_date", sa.Date(), nullable=False),
        sa.Column("next_value", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("prefix", "customer_id", "seq_date", name="uq_document_sequence_day"),
    )

    op.bulk_insert(
        app_config,
        [
            {
                "status": 1,
                "create_date": SEED_DATE,
                "config_key": "max_file_size",
                "config_value": "10",
                "data_type": "number",
                "description": "Maximum upload size per file, in MB",
                "is_active": True,
            },
            {
                "status": 1,
                "create_date": SEED_DATE,
                "config_key": "max_file_count",
                "config_value": "5",
                "data_type": "number",
                "description": "Maximum number of files per upload key",
                "is_active": True,
            },
            {
                "status": 1,
                "create_date": SEED_DATE,
                "config_key": "allowed_file_types",
                "config_value": json.dumps(
                    ["jpg", "jpeg", "png", "gif", "pdf", "doc", "docx", "txt", "zip", "rar", "xlsx", "csv"]
                ),
                "data_type": "json",
                "description": "Allowed upload file extensions",
                "is_active": True,
            },
        ],
    )


def downgrade() -> None:
    for table in (
        "document_sequence",
        "app_config",
        "room_information",
        "member_information",
        "notification_audit_information",
        "attachment_information",
        "bill_transaction_information",
        "payment_information",
        "bill_audit",
        "bill_room_information",
        "bill_information",
        "bill_transaction_type_information",
        "payment_type_information",
        "bill_type_information",
    ):
        op.drop_table(table)
