"""Add DNS load balancers, servers and server health

Revision ID: 2025_08_19_0002
Revises: 2025_08_19_0001
Create Date: 2025-08-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision = "2025_08_19_0002"
down_revision = "2025_08_19_0001"
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = inspect(bind)
    
    if "dns_load_balancers" not in inspector.get_table_names():
        op.create_table(
            "dns_load_balancers",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=63), nullable=False),
            sa.Column("domain_id", sa.Integer(), nullable=False),
            sa.Column("algorithm", sa.String(length=20), nullable=False, server_default="round-robin"),
            sa.Column("health_check_interval", sa.Integer(), nullable=False, server_default="30000"),
            sa.Column("health_check_timeout", sa.Integer(), nullable=False, server_default="5000"),
            sa.Column("max_retries", sa.Integer(), nullable=False, server_default="3"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["domain_id"], ["domains.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_dns_load_balancers_id", "dns_load_balancers", ["id"])
        op.create_index("ix_dns_load_balancers_domain_id", "dns_load_balancers", ["domain_id"])
    
    if "dns_servers" not in inspector.get_table_names():
        op.create_table(
            "dns_servers",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("ip", sa.String(length=15), nullable=False),
            sa.Column("port", sa.Integer(), nullable=False, server_default="80"),
            sa.Column("weight", sa.Integer(), nullable=False, server_default="100"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("load_balancer_id", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["load_balancer_id"], ["dns_load_balancers.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_dns_servers_id", "dns_servers", ["id"])
        op.create_index("ix_dns_servers_load_balancer_id", "dns_servers", ["load_balancer_id"])
    
    if "dns_server_health" not in inspector.get_table_names():
        op.create_table(
            "dns_server_health",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("server_id", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="unknown"),
            sa.Column("last_check", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.Column("response_time", sa.Integer(), nullable=False, server_default="-1"),
            sa.Column("uptime", sa.Float(), nullable=False, server_default="0"),
            sa.Column("load", sa.Float(), nullable=False, server_default="0"),
            sa.Column("memory_usage", sa.Float(), nullable=False, server_default="0"),
            sa.Column("disk_usage", sa.Float(), nullable=False, server_default="0"),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["server_id"], ["dns_servers.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("server_id"),
        )
        op.create_index("ix_dns_server_health_id", "dns_server_health", ["id"])
    
    columns = {c["name"] for c in inspector.get_columns("dns_records")}
    if "priority" not in columns:
        op.add_column("dns_records", sa.Column("priority", sa.Integer(), nullable=True))
        op.add_column("dns_records", sa.Column("weight", sa.Integer(), nullable=True))
        op.add_column("dns_records", sa.Column("port", sa.Integer(), nullable=True))
    if "is_load_balanced" not in columns:
        op.add_column(
            "dns_records",
            sa.Column("is_load_balanced", sa.Boolean(), nullable=False, server_default=sa.false()),
        )
        op.add_column("dns_records", sa.Column("load_balancer_id", sa.Integer(), nullable=True))
        op.create_foreign_key(
            "fk_dns_records_load_balancer_id",
            "dns_records", "dns_load_balancers",
            ["load_balancer_id"], ["id"],
            ondelete="SET NULL",
        )
        op.create_index("ix_dns_records_load_balancer_id", "dns_records", ["load_balancer_id"])


def downgrade():
    op.drop_index("ix_dns_records_load_balancer_id", table_name="dns_records")
    op.drop_constraint("fk_dns_records_load_balancer_id", "dns_records", type_="foreignkey")
    op.drop_column("dns_records", "load_balancer_id")
    op.drop_column("dns_records", "is_load_balanced")
    op.drop_column("dns_records", "port")
    op.drop_column("dns_records", "weight")
    op.drop_column("dns_records", "priority")
    op.drop_table("dns_server_health")
    op.drop_table("dns_servers")
    op.drop_table("dns_load_balancers")
